"""Drag sequencing - pick a freshly inserted block up under the pointer.

Starting a drag takes a synthetic press followed, one UI tick later,
by a small pointer move. The sequence is an explicit state machine:

    IDLE -> PENDING_PRESS -> PENDING_MOVE -> DONE

Each transition waits for the host's "next UI tick" primitive
(defer). The host's GestureSink does the real event dispatch.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from blockpalette.core.logging import get_logger

logger = get_logger(__name__)

Defer = Callable[[Callable[[], None]], None]


class DragState(str, Enum):
    IDLE = "idle"
    PENDING_PRESS = "pending_press"
    PENDING_MOVE = "pending_move"
    DONE = "done"


class GestureSink(ABC):
    """Host dispatch of the synthetic pointer events."""

    @abstractmethod
    def press(self, block: Any) -> None:
        """Dispatch a pointer press on the block at the pointer position."""
        pass

    @abstractmethod
    def move(self, block: Any) -> None:
        """Dispatch a small pointer move so the editor starts dragging."""
        pass


class DragSequencer:
    """Drives one press-then-move sequence at a time.

    start() abandons a sequence still in flight; ticks belonging to
    an abandoned sequence are ignored.
    """

    def __init__(self, sink: GestureSink, defer: Defer):
        self._sink = sink
        self._defer = defer
        self._state = DragState.IDLE
        self._block: Optional[Any] = None
        self._generation = 0

    @property
    def state(self) -> DragState:
        return self._state

    def start(self, block: Any) -> None:
        """Begin the sequence for a block."""
        self._generation += 1
        generation = self._generation
        self._block = block
        self._state = DragState.PENDING_PRESS
        self._schedule(lambda: self._press(generation))

    def reset(self) -> None:
        """Abandon any sequence and return to IDLE."""
        self._generation += 1
        self._block = None
        self._state = DragState.IDLE

    def _schedule(self, step: Callable[[], None]) -> None:
        try:
            self._defer(step)
        except Exception as e:
            logger.warning("Could not defer drag step", extra={"context": {"error": str(e)}})
            self._finish()

    def _press(self, generation: int) -> None:
        if generation != self._generation or self._state != DragState.PENDING_PRESS:
            return
        try:
            self._sink.press(self._block)
        except Exception as e:
            logger.warning("Drag press failed", extra={"context": {"error": str(e)}})
            self._finish()
            return
        self._state = DragState.PENDING_MOVE
        self._schedule(lambda: self._move(generation))

    def _move(self, generation: int) -> None:
        if generation != self._generation or self._state != DragState.PENDING_MOVE:
            return
        try:
            self._sink.move(self._block)
        except Exception as e:
            logger.warning("Drag move failed", extra={"context": {"error": str(e)}})
        self._finish()

    def _finish(self) -> None:
        self._block = None
        self._state = DragState.DONE
