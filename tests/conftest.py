"""Shared pytest fixtures for blockpalette tests.

Fixtures:
    - messages: Small localization message dictionary
    - toolbox_xml: Toolbox with Motion, Looks, and Operators categories
    - workspace: In-memory FakeWorkspace with a variable, a list, and a procedure
    - resolver: LabelResolver over the sample messages
    - builder: CatalogBuilder over the fake workspace
    - scheduler / pick_host / gesture_sink / defer: Manual interaction doubles
    - engine: Fully wired PaletteEngine
    - reset_log_handlers: Autouse, removes blockpalette log handlers after each test
"""

from typing import Any, Callable, Optional

import pytest

from blockpalette.core.config import PaletteConfig
from blockpalette.core.logging import reset_logging
from blockpalette.engine.catalog import CatalogBuilder
from blockpalette.engine.labels import LabelResolver
from blockpalette.engine.models import Candidate, CandidateKind
from blockpalette.engine.palette import PaletteEngine, create_engine
from blockpalette.host.messages import MessageCatalog
from blockpalette.host.workspace import BlockInstance, ToolboxTree, Variable, WorkspaceAccessor
from blockpalette.interaction.drag import GestureSink
from blockpalette.interaction.pick import Cancellable, PickHost, Scheduler

SAMPLE_MESSAGES = {
    "CATEGORY_MOTION": "Motion",
    "MOTION_MOVESTEPS": "move %1 steps",
    "MOTION_TURNRIGHT": "turn %1 %2 degrees",
    "LOOKS_SAYFORSECS": "say %1 for %2 seconds",
}

SAMPLE_TOOLBOX = """
<xml>
  <category name="%{BKY_CATEGORY_MOTION}" id="motion" colour="#4C97FF">
    <block type="motion_movesteps">
      <value name="STEPS"><shadow type="math_number"><field name="NUM">10</field></shadow></value>
    </block>
    <block type="motion_turnright">
      <value name="DEGREES"><shadow type="math_number"><field name="NUM">15</field></shadow></value>
    </block>
  </category>
  <category name="Looks" colour="#9966FF">
    <block type="looks_sayforsecs">
      <value name="MESSAGE"><shadow type="text"><field name="TEXT">Hello!</field></shadow></value>
      <value name="SECS"><shadow type="math_number"><field name="NUM">2</field></shadow></value>
    </block>
  </category>
  <category name="Operators" colour="#59C059">
    <block type="operator_gt"></block>
    <block type="operator_add"></block>
  </category>
</xml>
"""

TOOLBOX_TYPES = [
    "motion_movesteps",
    "motion_turnright",
    "looks_sayforsecs",
    "operator_gt",
    "operator_add",
]

COMMAND_IDS = ["clean-up", "collapse", "expand", "duplicate", "delete"]


class FakeWorkspace(WorkspaceAccessor):
    """In-memory workspace that records every write operation."""

    def __init__(
        self,
        toolbox: ToolboxTree = None,
        variables: Optional[list[Variable]] = None,
        blocks: Optional[list[BlockInstance]] = None,
        flyout: Optional[list[str]] = None,
        available: bool = True,
    ):
        self.toolbox = toolbox
        self.variables = list(variables or [])
        self.blocks = list(blocks or [])
        self.flyout = list(flyout or [])
        self.available = available
        self.created: list[tuple[str, str]] = []
        self.cleaned = 0
        self.collapsed: dict[str, bool] = {}
        self.duplicated: list[str] = []
        self.deleted: list[str] = []

    def is_available(self) -> bool:
        return self.available

    def top_blocks(self) -> list[BlockInstance]:
        return list(self.blocks)

    def all_blocks(self) -> list[BlockInstance]:
        found: list[BlockInstance] = []

        def walk(block: BlockInstance) -> None:
            found.append(block)
            for child in block.children:
                walk(child)

        for block in self.blocks:
            walk(block)
        return found

    def all_variables(self) -> list[Variable]:
        return list(self.variables)

    def toolbox_tree(self) -> ToolboxTree:
        return self.toolbox

    def flyout_block_types(self) -> list[str]:
        return list(self.flyout)

    def create_block(self, template: str, type_id: str) -> Optional[BlockInstance]:
        self.created.append((template, type_id))
        return BlockInstance(id=f"new{len(self.created)}", type=type_id)

    def clean_up(self) -> None:
        self.cleaned += 1

    def set_collapsed(self, block: BlockInstance, collapsed: bool) -> None:
        self.collapsed[block.id] = collapsed

    def duplicate_block(self, block: BlockInstance) -> None:
        self.duplicated.append(block.id)

    def delete_block(self, block: BlockInstance) -> None:
        self.deleted.append(block.id)


class _Handle(Cancellable):
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose timers only fire when the test says so."""

    def __init__(self) -> None:
        self.timers: list[tuple[float, Callable[[], None], _Handle]] = []

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> Cancellable:
        handle = _Handle()
        self.timers.append((delay_seconds, callback, handle))
        return handle

    def fire_all(self) -> None:
        for _, callback, handle in list(self.timers):
            if not handle.cancelled:
                callback()


class FakePickHost(PickHost):
    """Records listener registrations; tests simulate clicks and Escape."""

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.released = 0
        self.listeners: list[tuple[Callable[[Any], None], Callable[[], None]]] = []

    def listen(
        self,
        prompt: str,
        on_block: Callable[[Any], None],
        on_escape: Callable[[], None],
    ) -> Callable[[], None]:
        self.prompts.append(prompt)
        self.listeners.append((on_block, on_escape))

        def release() -> None:
            self.released += 1

        return release

    def click(self, block: Any) -> None:
        """Click delivered to the most recently registered listener."""
        self.listeners[-1][0](block)

    def escape(self) -> None:
        self.listeners[-1][1]()


class RecordingSink(GestureSink):
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def press(self, block: Any) -> None:
        self.events.append(("press", block))

    def move(self, block: Any) -> None:
        self.events.append(("move", block))


class ManualDefer:
    """Collects deferred callbacks; tick() runs the ones queued so far."""

    def __init__(self) -> None:
        self.queue: list[Callable[[], None]] = []

    def __call__(self, callback: Callable[[], None]) -> None:
        self.queue.append(callback)

    def tick(self) -> None:
        pending, self.queue = self.queue, []
        for callback in pending:
            callback()


def make_candidate(
    candidate_id: str,
    text: str,
    category: Optional[str] = None,
    kind: CandidateKind = CandidateKind.INSERT,
    type_id: Optional[str] = None,
) -> Candidate:
    """Candidate with a no-op action, for scoring and ranking tests."""
    return Candidate(
        id=candidate_id,
        text=text,
        kind=kind,
        invoke=lambda: None,
        category=category,
        type_id=type_id,
    )


class StaticBuilder(CatalogBuilder):
    """Builder returning a fixed candidate list."""

    def __init__(self, candidates: list[Candidate]):
        super().__init__(None, LabelResolver())
        self.candidates = candidates

    def list_candidates(self) -> list[Candidate]:
        return list(self.candidates)


@pytest.fixture(autouse=True)
def reset_log_handlers():
    """Drop handlers installed by create_engine between tests."""
    yield
    reset_logging()


@pytest.fixture
def messages() -> dict[str, str]:
    return dict(SAMPLE_MESSAGES)


@pytest.fixture
def toolbox_xml() -> str:
    return SAMPLE_TOOLBOX


@pytest.fixture
def workspace(toolbox_xml: str) -> FakeWorkspace:
    """Workspace with one variable, one list, and a custom block defined twice."""
    prototype = BlockInstance(
        id="proto1",
        type="procedures_prototype",
        proc_code="jump %s times",
        mutation='<mutation proccode="jump %s times" argumentids="[&quot;a1&quot;]"></mutation>',
    )
    duplicate_prototype = BlockInstance(
        id="proto2",
        type="procedures_prototype",
        mutation='<mutation proccode="jump %s times"></mutation>',
    )
    return FakeWorkspace(
        toolbox=toolbox_xml,
        variables=[
            Variable(id="v1", name="score"),
            Variable(id="l1", name="scores", type="list"),
        ],
        blocks=[
            BlockInstance(id="def1", type="procedures_definition", children=[prototype]),
            BlockInstance(id="def2", type="procedures_definition", children=[duplicate_prototype]),
            BlockInstance(id="b1", type="motion_movesteps"),
        ],
    )


@pytest.fixture
def resolver(messages: dict[str, str]) -> LabelResolver:
    return LabelResolver(MessageCatalog(messages))


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def pick_host() -> FakePickHost:
    return FakePickHost()


@pytest.fixture
def gesture_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def defer() -> ManualDefer:
    return ManualDefer()


@pytest.fixture
def builder(workspace: FakeWorkspace, resolver: LabelResolver) -> CatalogBuilder:
    return CatalogBuilder(workspace, resolver)


@pytest.fixture
def engine(
    workspace: FakeWorkspace,
    messages: dict[str, str],
    pick_host: FakePickHost,
    scheduler: ManualScheduler,
    gesture_sink: RecordingSink,
    defer: ManualDefer,
) -> PaletteEngine:
    return create_engine(
        workspace,
        messages=messages,
        config=PaletteConfig(),
        pick_host=pick_host,
        scheduler=scheduler,
        gesture_sink=gesture_sink,
        defer=defer,
    )
