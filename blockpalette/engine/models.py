"""Palette data models.

BlockTemplate and DynamicEntity describe where candidates come from;
Candidate is the unit the engine ranks; HistoryEntry remembers what
the user ran. All are rebuilt per evaluation except history.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

# Fixed category names of per-entity candidates
VARIABLES_CATEGORY = "Variables"
LISTS_CATEGORY = "Lists"
PROCEDURES_CATEGORY = "My Blocks"


class CandidateKind(str, Enum):
    ACTION = "Action"  # Editor command
    INSERT = "Insert"  # Block template to insert


class EntityKind(str, Enum):
    VARIABLE = "variable"
    LIST = "list"
    PROCEDURE = "procedure"


@dataclass(frozen=True)
class BlockTemplate:
    """A block definition that can be inserted.

    Attributes:
        type_id: Block type identifier (or synthesized per-entity id)
        template: Serialized block XML passed to the workspace on insert
        text: Resolved display label
        category: Normalized category name
        category_color: Category colour, e.g. "#4C97FF"
        opcode: Real block type when type_id is synthesized
    """

    type_id: str
    template: str
    text: str
    category: Optional[str] = None
    category_color: Optional[str] = None
    opcode: Optional[str] = None

    @property
    def block_type(self) -> str:
        """Type passed to the workspace when creating the block."""
        return self.opcode or self.type_id


@dataclass(frozen=True)
class DynamicEntity:
    """A user-defined variable, list, or procedure found at runtime.

    Procedures carry their prototype's serialized mutation so the
    call block gets the same arguments.
    """

    kind: EntityKind
    name: str
    id: str
    mutation: Optional[str] = None


@dataclass
class Candidate:
    """A single selectable item in the palette result list.

    Attributes:
        id: Stable id, unique within one evaluation
        text: Display label
        kind: Action or Insert
        invoke: Runs the candidate; delegates to host collaborators
        category: Category name shown next to the label
        category_color: Category colour for the swatch
        type_id: Block type identifier (blocks only)
        template: Serialized block XML (blocks only)
        recent: Shown because it is in history (empty query only)
    """

    id: str
    text: str
    kind: CandidateKind
    invoke: Callable[[], None]
    category: Optional[str] = None
    category_color: Optional[str] = None
    type_id: Optional[str] = None
    template: Optional[str] = None
    recent: bool = False

    @property
    def type_label(self) -> str:
        """Right-hand label in the result row."""
        if self.recent:
            return "Recent"
        return self.category or self.kind.value


@dataclass
class HistoryEntry:
    """A previously executed candidate."""

    candidate_id: str
    candidate: Candidate


@dataclass
class SourceResult:
    """Outcome of one catalog source.

    A failing source yields no candidates and carries the error;
    the other sources are unaffected.

    Attributes:
        source: Source name ("commands", "toolbox", "variables", "lists", "procedures")
        candidates: Candidates contributed by the source
        error: Exception that stopped the source, if any
    """

    source: str
    candidates: list[Candidate] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
