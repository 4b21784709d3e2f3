"""Entity catalog - everything the palette can offer right now.

Candidates come from independent sources, each run in isolation so
one failing source never empties the palette:

    - commands: Built-in editor actions (clean up, collapse, ...)
    - toolbox: Block templates from the toolbox definition tree
    - variables: Five blocks per scalar variable
    - lists: Ten blocks per list
    - procedures: One call block per distinct custom block signature

Sources are rebuilt from scratch on every call because the workspace
can change between keystrokes.

Usage:
    from blockpalette.engine.catalog import CatalogBuilder

    builder = CatalogBuilder(workspace, LabelResolver(catalog))
    candidates = builder.list_candidates()
"""

import dataclasses
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

import jinja2

from blockpalette.core.exceptions import DuplicateCandidateError, HostUnavailableError
from blockpalette.core.logging import get_logger
from blockpalette.engine.labels import LabelResolver, local_name
from blockpalette.engine.models import (
    BlockTemplate,
    Candidate,
    CandidateKind,
    DynamicEntity,
    EntityKind,
    LISTS_CATEGORY,
    PROCEDURES_CATEGORY,
    SourceResult,
    VARIABLES_CATEGORY,
)
from blockpalette.host.workspace import BlockInstance, ToolboxTree, WorkspaceAccessor
from blockpalette.interaction.drag import DragSequencer
from blockpalette.interaction.pick import BlockPicker

logger = get_logger(__name__)


# Template directory
TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "blocks"

VARIABLE_COLOR = "#FF8C1A"
LIST_COLOR = "#FF661A"
PROCEDURE_COLOR = "#FF6680"

PROCEDURE_DEFINITION = "procedures_definition"
PROCEDURE_PROTOTYPE = "procedures_prototype"
PROCEDURE_CALL = "procedures_call"


# =============================================================================
# BLOCK TEMPLATES
# =============================================================================

# Jinja2 environment (created once, reused)
_env: Optional[jinja2.Environment] = None


def _get_env() -> jinja2.Environment:
    """Get or create the Jinja2 environment."""
    global _env
    if _env is None:
        _env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=True,
            undefined=jinja2.StrictUndefined,
        )
    return _env


def render_block(template_name: str, **context: Any) -> str:
    """Render a block XML template.

    Args:
        template_name: Template file name in templates/blocks
        **context: Template variables

    Returns:
        Serialized block XML
    """
    return _get_env().get_template(template_name).render(**context)


@dataclass(frozen=True)
class ValueInput:
    """A value input filled with a shadow default."""

    name: str
    shadow_type: str
    field_name: str
    default: str


@dataclass(frozen=True)
class EntityOperation:
    """One block generated per variable or list."""

    opcode: str
    label: str  # format string, {name} is the entity name
    inputs: tuple[ValueInput, ...] = ()


_TEXT_ITEM = ValueInput("ITEM", "text", "TEXT", "thing")
_INDEX = ValueInput("INDEX", "math_integer", "NUM", "1")

VARIABLE_OPERATIONS: tuple[EntityOperation, ...] = (
    EntityOperation("data_variable", "{name}"),
    EntityOperation(
        "data_setvariableto", "set {name} to", (ValueInput("VALUE", "text", "TEXT", "0"),)
    ),
    EntityOperation(
        "data_changevariableby",
        "change {name} by",
        (ValueInput("VALUE", "math_number", "NUM", "1"),),
    ),
    EntityOperation("data_showvariable", "show variable {name}"),
    EntityOperation("data_hidevariable", "hide variable {name}"),
)

LIST_OPERATIONS: tuple[EntityOperation, ...] = (
    EntityOperation("data_listcontents", "{name}"),
    EntityOperation("data_addtolist", "add to {name}", (_TEXT_ITEM,)),
    EntityOperation("data_itemoflist", "item of {name}", (_INDEX,)),
    EntityOperation("data_deleteoflist", "delete item of {name}", (_INDEX,)),
    EntityOperation("data_insertatlist", "insert at {name}", (_TEXT_ITEM, _INDEX)),
    EntityOperation("data_replaceitemoflist", "replace item of {name}", (_INDEX, _TEXT_ITEM)),
    EntityOperation("data_lengthoflist", "length of {name}"),
    EntityOperation("data_listcontainsitem", "{name} contains", (_TEXT_ITEM,)),
    EntityOperation("data_showlist", "show list {name}"),
    EntityOperation("data_hidelist", "hide list {name}"),
)


# =============================================================================
# BUILT-IN COMMANDS
# =============================================================================

# (id, label) - ids are fixed literals and never contain an underscore,
# so they cannot collide with block type ids
BUILTIN_COMMANDS: tuple[tuple[str, str], ...] = (
    ("clean-up", "Clean up blocks"),
    ("collapse", "Collapse all blocks"),
    ("expand", "Expand all blocks"),
    ("duplicate", "Duplicate block..."),
    ("delete", "Delete block..."),
)


@dataclass(frozen=True)
class _ToolboxCategory:
    name: Optional[str]
    color: Optional[str]


def procedure_code(prototype: BlockInstance) -> str:
    """Signature of a procedure prototype, e.g. "jump %s times".

    Tried in order: the host-exposed proc code, the mutation's
    proccode attribute, then a PROCCODE or NAME field.
    """
    if prototype.proc_code:
        return prototype.proc_code

    if prototype.mutation:
        try:
            code = ET.fromstring(prototype.mutation).get("proccode")
        except ET.ParseError:
            code = None
        if code:
            return code

    return prototype.fields.get("PROCCODE") or prototype.fields.get("NAME") or ""


class CatalogBuilder:
    """Builds the candidate universe from the live workspace.

    Args:
        workspace: Workspace accessor; None means the host is not ready
        resolver: Label resolver for toolbox blocks and categories
        picker: Interactive pick flow for duplicate/delete
        drag: Drag sequencer started after a block is inserted
        strict_ids: Raise DuplicateCandidateError instead of renaming
        on_failure: Called with every failed SourceResult
    """

    def __init__(
        self,
        workspace: Optional[WorkspaceAccessor],
        resolver: LabelResolver,
        picker: Optional[BlockPicker] = None,
        drag: Optional[DragSequencer] = None,
        strict_ids: bool = False,
        on_failure: Optional[Callable[[SourceResult], None]] = None,
    ):
        self._workspace = workspace
        self._resolver = resolver
        self._picker = picker
        self._drag = drag
        self._strict_ids = strict_ids
        self._on_failure = on_failure

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def collect(self) -> list[SourceResult]:
        """Run every source in isolation.

        Returns:
            One SourceResult per source, in discovery order
        """
        sources: list[tuple[str, Callable[[], list[Candidate]]]] = [
            ("commands", self._command_candidates),
            ("toolbox", self._toolbox_candidates),
            ("variables", self._variable_candidates),
            ("lists", self._list_candidates),
            ("procedures", self._procedure_candidates),
        ]
        results = [self._run_source(name, build) for name, build in sources]
        self._ensure_unique_ids(results)

        for result in results:
            if not result.ok:
                self._report_failure(result)
        return results

    def list_candidates(self) -> list[Candidate]:
        """All candidates, commands first, then toolbox, then user data."""
        candidates: list[Candidate] = []
        for result in self.collect():
            candidates.extend(result.candidates)
        return candidates

    def toolbox_templates(self) -> list[BlockTemplate]:
        """Block templates from the toolbox, or from the flyout as a fallback."""
        workspace = self._require_workspace()

        entries = self._walk_toolbox(workspace.toolbox_tree())
        if entries:
            templates: list[BlockTemplate] = []
            for node, category in entries:
                try:
                    templates.append(self._template_from_node(workspace, node, category))
                except Exception as e:
                    logger.warning(
                        "Skipping toolbox block",
                        extra={"context": {"type_id": node.get("type"), "error": str(e)}},
                    )
            return templates

        logger.debug("Toolbox tree empty, falling back to flyout")
        templates = []
        for type_id in workspace.flyout_block_types():
            if not type_id:
                continue
            template = render_block("bare_block.xml.j2", type_id=type_id)
            templates.append(
                BlockTemplate(
                    type_id=type_id,
                    template=template,
                    text=self._resolver.resolve(type_id, template),
                )
            )
        return templates

    def dynamic_entities(self, kind: EntityKind) -> list[DynamicEntity]:
        """User-defined entities of one kind currently in the workspace."""
        workspace = self._require_workspace()

        if kind == EntityKind.PROCEDURE:
            return self._procedure_entities(workspace)

        want_lists = kind == EntityKind.LIST
        entities: list[DynamicEntity] = []
        for variable in workspace.all_variables():
            if variable.is_list != want_lists or not variable.name:
                continue
            entities.append(DynamicEntity(kind=kind, name=variable.name, id=variable.id or ""))
        return entities

    def expand_entity(self, entity: DynamicEntity) -> list[BlockTemplate]:
        """Block templates generated for one user-defined entity."""
        if entity.kind == EntityKind.PROCEDURE:
            return [
                BlockTemplate(
                    type_id=f"{PROCEDURE_CALL}_{entity.name}",
                    template=render_block("procedure_call.xml.j2", mutation=entity.mutation or ""),
                    text=entity.name,
                    category=PROCEDURES_CATEGORY,
                    category_color=PROCEDURE_COLOR,
                    opcode=PROCEDURE_CALL,
                )
            ]

        if entity.kind == EntityKind.LIST:
            operations = LIST_OPERATIONS
            field_name, variable_type = "LIST", "list"
            category, color = LISTS_CATEGORY, LIST_COLOR
        else:
            operations = VARIABLE_OPERATIONS
            field_name, variable_type = "VARIABLE", ""
            category, color = VARIABLES_CATEGORY, VARIABLE_COLOR

        templates = []
        for operation in operations:
            template = render_block(
                "entity_block.xml.j2",
                opcode=operation.opcode,
                field_name=field_name,
                entity_id=entity.id,
                variable_type=variable_type,
                name=entity.name,
                inputs=operation.inputs,
            )
            templates.append(
                BlockTemplate(
                    type_id=f"{operation.opcode}_{entity.id}",
                    template=template,
                    text=operation.label.format(name=entity.name),
                    category=category,
                    category_color=color,
                    opcode=operation.opcode,
                )
            )
        return templates

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _command_candidates(self) -> list[Candidate]:
        actions: dict[str, Callable[[], None]] = {
            "clean-up": self._clean_up,
            "collapse": partial(self._set_all_collapsed, True),
            "expand": partial(self._set_all_collapsed, False),
            "duplicate": partial(self._pick_block, "duplicate"),
            "delete": partial(self._pick_block, "delete"),
        }
        return [
            Candidate(id=command_id, text=label, kind=CandidateKind.ACTION, invoke=actions[command_id])
            for command_id, label in BUILTIN_COMMANDS
        ]

    def _toolbox_candidates(self) -> list[Candidate]:
        return [self._block_candidate(t) for t in self.toolbox_templates()]

    def _variable_candidates(self) -> list[Candidate]:
        return self._entity_candidates(EntityKind.VARIABLE)

    def _list_candidates(self) -> list[Candidate]:
        return self._entity_candidates(EntityKind.LIST)

    def _procedure_candidates(self) -> list[Candidate]:
        return self._entity_candidates(EntityKind.PROCEDURE)

    def _entity_candidates(self, kind: EntityKind) -> list[Candidate]:
        candidates: list[Candidate] = []
        for entity in self.dynamic_entities(kind):
            try:
                templates = self.expand_entity(entity)
            except Exception as e:
                logger.warning(
                    "Skipping user entity",
                    extra={"context": {"kind": kind.value, "name": entity.name, "error": str(e)}},
                )
                continue
            candidates.extend(self._block_candidate(t) for t in templates)
        return candidates

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_workspace(self) -> WorkspaceAccessor:
        if self._workspace is None or not self._workspace.is_available():
            raise HostUnavailableError("Workspace is not available")
        return self._workspace

    def _run_source(self, name: str, build: Callable[[], list[Candidate]]) -> SourceResult:
        try:
            return SourceResult(source=name, candidates=build())
        except HostUnavailableError as e:
            logger.debug("Catalog source skipped", extra={"context": {"source": name, "error": str(e)}})
            return SourceResult(source=name, error=e)
        except Exception as e:
            logger.warning(
                "Catalog source failed",
                extra={"context": {"source": name, "error": str(e)}},
                exc_info=True,
            )
            return SourceResult(source=name, error=e)

    def _report_failure(self, result: SourceResult) -> None:
        if self._on_failure is None:
            return
        try:
            self._on_failure(result)
        except Exception as e:
            logger.warning(
                "Source failure hook raised",
                extra={"context": {"source": result.source, "error": str(e)}},
            )

    def _ensure_unique_ids(self, results: list[SourceResult]) -> None:
        """Make candidate ids unique across all sources, in discovery order.

        A repeated id becomes "<id>#2", "<id>#3", ... In strict mode the
        offending source fails with DuplicateCandidateError instead.
        """
        seen: set[str] = set()
        for index, result in enumerate(results):
            if not result.ok:
                continue
            local_seen = set(seen)
            unique: list[Candidate] = []
            try:
                for candidate in result.candidates:
                    if candidate.id in local_seen:
                        if self._strict_ids:
                            raise DuplicateCandidateError(candidate.id)
                        new_id = self._disambiguate(candidate.id, local_seen)
                        logger.warning(
                            "Duplicate candidate id renamed",
                            extra={"context": {"source": result.source, "id": candidate.id, "new_id": new_id}},
                        )
                        candidate = dataclasses.replace(candidate, id=new_id)
                    local_seen.add(candidate.id)
                    unique.append(candidate)
            except DuplicateCandidateError as e:
                logger.warning(
                    "Catalog source failed",
                    extra={"context": {"source": result.source, "error": str(e)}},
                )
                results[index] = SourceResult(source=result.source, error=e)
                continue
            seen = local_seen
            result.candidates = unique

    @staticmethod
    def _disambiguate(candidate_id: str, taken: set[str]) -> str:
        n = 2
        while f"{candidate_id}#{n}" in taken:
            n += 1
        return f"{candidate_id}#{n}"

    def _walk_toolbox(self, tree: ToolboxTree) -> list[tuple[ET.Element, Optional[_ToolboxCategory]]]:
        """Every block node in the toolbox with its nearest enclosing category."""
        if tree is None:
            return []
        if isinstance(tree, str):
            try:
                tree = ET.fromstring(tree)
            except ET.ParseError as e:
                logger.warning("Toolbox XML is malformed", extra={"context": {"error": str(e)}})
                return []

        entries: list[tuple[ET.Element, Optional[_ToolboxCategory]]] = []

        def walk(node: ET.Element, category: Optional[_ToolboxCategory]) -> None:
            tag = local_name(node.tag)
            if tag == "category":
                category = _ToolboxCategory(
                    name=node.get("name") or node.get("id"),
                    color=node.get("colour") or node.get("colourvalue"),
                )
            elif tag == "block":
                entries.append((node, category))
            for child in node:
                walk(child, category)

        walk(tree, None)
        return entries

    def _template_from_node(
        self,
        workspace: WorkspaceAccessor,
        node: ET.Element,
        category: Optional[_ToolboxCategory],
    ) -> BlockTemplate:
        template = workspace.serialize(node)
        type_id = node.get("type") or node.get("id") or template
        return BlockTemplate(
            type_id=type_id,
            template=template,
            text=self._resolver.resolve(type_id, node),
            category=self._resolver.resolve_category_name(category.name) if category else None,
            category_color=category.color if category else None,
        )

    def _procedure_entities(self, workspace: WorkspaceAccessor) -> list[DynamicEntity]:
        entities: list[DynamicEntity] = []
        seen: set[str] = set()
        for block in workspace.all_blocks():
            if block.type != PROCEDURE_DEFINITION:
                continue
            try:
                prototype = next((c for c in block.children if c.type == PROCEDURE_PROTOTYPE), None)
                if prototype is None:
                    continue
                code = procedure_code(prototype)
                if not code or code in seen:
                    continue
                seen.add(code)
                entities.append(
                    DynamicEntity(
                        kind=EntityKind.PROCEDURE,
                        name=code,
                        id=code,
                        mutation=prototype.mutation,
                    )
                )
            except Exception as e:
                logger.warning(
                    "Failed to process custom procedure",
                    extra={"context": {"block_id": block.id, "error": str(e)}},
                )
        return entities

    def _block_candidate(self, template: BlockTemplate) -> Candidate:
        return Candidate(
            id=template.type_id,
            text=template.text,
            kind=CandidateKind.INSERT,
            invoke=partial(self._insert, template.template, template.block_type),
            category=template.category,
            category_color=template.category_color,
            type_id=template.type_id,
            template=template.template,
        )

    # ------------------------------------------------------------------
    # Invocations (delegate to host collaborators)
    # ------------------------------------------------------------------

    def _insert(self, template: str, block_type: str) -> None:
        workspace = self._require_workspace()
        block = workspace.create_block(template, block_type)
        if block is None:
            logger.error("Could not create block", extra={"context": {"type_id": block_type}})
            return
        if self._drag is not None:
            self._drag.start(block)

    def _clean_up(self) -> None:
        self._require_workspace().clean_up()

    def _set_all_collapsed(self, collapsed: bool) -> None:
        workspace = self._require_workspace()
        for block in workspace.top_blocks():
            try:
                workspace.set_collapsed(block, collapsed)
            except Exception as e:
                logger.warning(
                    "Could not change collapsed state",
                    extra={"context": {"block_id": block.id, "collapsed": collapsed, "error": str(e)}},
                )

    def _pick_block(self, action_name: str) -> None:
        workspace = self._require_workspace()
        if self._picker is None:
            logger.warning(
                "No block picker configured",
                extra={"context": {"action": action_name}},
            )
            return
        action = workspace.duplicate_block if action_name == "duplicate" else workspace.delete_block
        self._picker.start(action_name, action)
