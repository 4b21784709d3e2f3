"""Command palette engine - ranked blocks and actions for a typed query.

Every keystroke calls evaluate(). The candidate universe is rebuilt
from the live workspace, scored against the query tokens, and capped.
An empty query shows recently executed candidates first. Recent
history lives only as long as the engine instance.

This module provides the search logic. Rendering, key capture, and
the actual block creation belong to the host editor.

Usage:
    from blockpalette.engine.palette import create_engine

    engine = create_engine(workspace, messages=editor.messages)
    results = engine.evaluate("say")
    engine.execute(results[0])
"""

import dataclasses
from typing import Callable, Optional, Sequence

from blockpalette.core.config import PaletteConfig, get_config
from blockpalette.core.logging import get_logger, setup_logging
from blockpalette.engine.catalog import CatalogBuilder
from blockpalette.engine.labels import DEFAULT_FUZZY_WEIGHTS, FuzzyLabelWeights, LabelResolver
from blockpalette.engine.models import Candidate, HistoryEntry, SourceResult
from blockpalette.engine.scoring import DEFAULT_WEIGHTS, ScoreWeights, score_candidate, tokenize
from blockpalette.host.messages import MessageCatalog, MessageSource
from blockpalette.host.workspace import WorkspaceAccessor
from blockpalette.interaction.drag import Defer, DragSequencer, GestureSink
from blockpalette.interaction.pick import BlockPicker, PickHost, Scheduler

logger = get_logger(__name__)


class PaletteEngine:
    """Candidate discovery, ranking, and recent history for one palette session.

    Args:
        builder: Catalog builder producing the candidate universe
        config: Result and history bounds
        weights: Scoring weights
        picker: Pending pick flow, cancelled by close()
        drag: Drag sequencer, reset by close()
    """

    def __init__(
        self,
        builder: CatalogBuilder,
        config: Optional[PaletteConfig] = None,
        weights: ScoreWeights = DEFAULT_WEIGHTS,
        picker: Optional[BlockPicker] = None,
        drag: Optional[DragSequencer] = None,
    ) -> None:
        self._builder = builder
        self._config = config or get_config()
        self._weights = weights
        self._picker = picker
        self._drag = drag
        self._history: list[HistoryEntry] = []

    @property
    def builder(self) -> CatalogBuilder:
        return self._builder

    @property
    def history(self) -> list[HistoryEntry]:
        """Recently executed candidates, newest first."""
        return list(self._history)

    @property
    def history_capacity(self) -> int:
        return self._config.history_limit

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def evaluate(self, query: str) -> list[Candidate]:
        """Rank the current candidate universe against a query.

        - Non-empty query: candidates scoring above zero, best first
        - Empty query with history: recent candidates first (newest
          first, marked recent), then everything else ranked by the flat
          bonuses (user data, then blocks, then actions)
        - Empty query without history: discovery order

        Ties keep discovery order. The result never exceeds
        MAX_RESULTS_LIMIT, or max_results if that is lower.
        """
        tokens = tokenize(query)
        universe = self._builder.list_candidates()
        limit = self._config.result_limit

        if tokens:
            return self._rank(universe, tokens)[:limit]

        if not self._history:
            return universe[:limit]

        by_id = {candidate.id: candidate for candidate in universe}
        recent = [
            dataclasses.replace(by_id[entry.candidate_id], recent=True)
            for entry in self._history
            if entry.candidate_id in by_id
        ]
        recent_ids = {candidate.id for candidate in recent}
        remaining = [candidate for candidate in universe if candidate.id not in recent_ids]

        return (recent + self._rank(remaining, tokens, keep_unmatched=True))[:limit]

    def score(self, candidate: Candidate, query: str) -> int:
        """Score one candidate against a raw query."""
        return score_candidate(candidate, tokenize(query), self._weights)

    def _rank(
        self,
        candidates: Sequence[Candidate],
        tokens: Sequence[str],
        keep_unmatched: bool = False,
    ) -> list[Candidate]:
        scored = [(score_candidate(c, tokens, self._weights), c) for c in candidates]
        if not keep_unmatched:
            scored = [(s, c) for s, c in scored if s > 0]
        # sorted() is stable: equal scores keep discovery order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
        return [c for _, c in scored]

    # ------------------------------------------------------------------
    # Execution & history
    # ------------------------------------------------------------------

    def record_execution(self, candidate: Candidate) -> None:
        """Move a candidate to the front of recent history."""
        snapshot = dataclasses.replace(candidate, recent=False)
        self._history = [e for e in self._history if e.candidate_id != candidate.id]
        self._history.insert(0, HistoryEntry(candidate_id=candidate.id, candidate=snapshot))
        if len(self._history) > self.history_capacity:
            self._history = self._history[: self.history_capacity]

    def execute(self, candidate: Candidate) -> bool:
        """Record a candidate as recent and run it.

        Returns:
            True if the candidate's action completed without raising
        """
        self.record_execution(candidate)
        logger.debug(
            "Palette command executed",
            extra={"context": {"id": candidate.id, "kind": candidate.kind.value}},
        )
        try:
            candidate.invoke()
        except Exception as e:
            logger.error(
                "Command action error",
                extra={"context": {"id": candidate.id, "error": str(e)}},
                exc_info=True,
            )
            return False
        return True

    def clear_history(self) -> None:
        self._history.clear()

    def close(self) -> None:
        """End the session: cancel a pending pick and any drag in flight."""
        if self._picker is not None:
            self._picker.cancel()
        if self._drag is not None:
            self._drag.reset()


def create_engine(
    workspace: Optional[WorkspaceAccessor],
    messages: MessageSource = None,
    config: Optional[PaletteConfig] = None,
    pick_host: Optional[PickHost] = None,
    scheduler: Optional[Scheduler] = None,
    gesture_sink: Optional[GestureSink] = None,
    defer: Optional[Defer] = None,
    on_source_failure: Optional[Callable[[SourceResult], None]] = None,
    fuzzy_weights: FuzzyLabelWeights = DEFAULT_FUZZY_WEIGHTS,
) -> PaletteEngine:
    """Wire a palette engine for one editor session.

    Args:
        workspace: Host workspace accessor (None if not ready yet)
        messages: Message dictionary, or a provider returning one
        config: Palette configuration; defaults to get_config(). Also
            drives logging setup (first call per process)
        pick_host: Enables the duplicate/delete pick flow
        scheduler: Timer source for pick timeouts. Hosts with a UI event
            loop should pass one that fires on that loop; the default
            ThreadingScheduler fires on a timer thread
        gesture_sink: Enables drag-after-insert, together with defer
        defer: Host "next UI tick" primitive
        on_source_failure: Observability hook for failed catalog sources
        fuzzy_weights: Tuning for the fuzzy label scan

    Returns:
        Configured PaletteEngine
    """
    config = config or get_config()
    setup_logging(config)

    picker = None
    if pick_host is not None:
        picker = BlockPicker(pick_host, scheduler, timeout_seconds=config.pick_timeout_seconds)

    drag = None
    if gesture_sink is not None and defer is not None:
        drag = DragSequencer(gesture_sink, defer)

    builder = CatalogBuilder(
        workspace,
        LabelResolver(MessageCatalog(messages), fuzzy_weights),
        picker=picker,
        drag=drag,
        strict_ids=config.strict_ids,
        on_failure=on_source_failure,
    )
    return PaletteEngine(builder, config=config, picker=picker, drag=drag)
