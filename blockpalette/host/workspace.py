"""Workspace accessor - the single seam between the engine and the host editor.

Every piece of live editor state the palette reads, and every editor
operation a candidate can trigger, goes through one injected
WorkspaceAccessor. Host adapters subclass it; tests use an in-memory
fake.

Subclasses must implement:
    Read side (catalog discovery):
        - top_blocks(): Top-level block instances
        - all_blocks(): Every block instance, nested ones included
        - all_variables(): Scalar and list variables
        - toolbox_tree(): Toolbox category/block definition tree
    Write side (candidate invocation):
        - create_block(): Create a block from a serialized template
        - clean_up(), set_collapsed(), duplicate_block(), delete_block()
"""

import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

LIST_VARIABLE_TYPE = "list"

ToolboxTree = Union[ET.Element, str, None]


@dataclass
class Variable:
    """A user-defined variable or list in the workspace.

    Attributes:
        id: Host variable id
        name: Display name
        type: Host variable type ("" for scalars, "list" for lists)
    """

    id: str
    name: str
    type: str = ""

    @property
    def is_list(self) -> bool:
        return self.type == LIST_VARIABLE_TYPE


@dataclass
class BlockInstance:
    """A block instance living in the workspace.

    Attributes:
        id: Host block id
        type: Block type identifier, e.g. "procedures_definition"
        children: Direct child blocks
        proc_code: Procedure signature when the host exposes it directly
        mutation: Serialized <mutation> element, if the block has one
        fields: Field name -> value
        host: The host's own block object, passed back on write operations
    """

    id: str
    type: str
    children: list["BlockInstance"] = field(default_factory=list)
    proc_code: Optional[str] = None
    mutation: Optional[str] = None
    fields: dict[str, str] = field(default_factory=dict)
    host: Any = None


class WorkspaceAccessor(ABC):
    """Abstract read/write capability over the host workspace."""

    def is_available(self) -> bool:
        """Whether the host workspace is ready to be read."""
        return True

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @abstractmethod
    def top_blocks(self) -> list[BlockInstance]:
        """Top-level block instances, in workspace order."""
        pass

    @abstractmethod
    def all_blocks(self) -> list[BlockInstance]:
        """Every block instance in the workspace."""
        pass

    @abstractmethod
    def all_variables(self) -> list[Variable]:
        """All variables, scalars and lists."""
        pass

    @abstractmethod
    def toolbox_tree(self) -> ToolboxTree:
        """Toolbox definition tree as an Element or XML text.

        Returns None when the toolbox is not available.
        """
        pass

    def flyout_block_types(self) -> list[str]:
        """Block types shown in the flyout.

        Used only when the toolbox tree yields no blocks.
        """
        return []

    def serialize(self, node: ET.Element) -> str:
        """Render a definition node to a template usable by create_block()."""
        return ET.tostring(node, encoding="unicode")

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    @abstractmethod
    def create_block(self, template: str, type_id: str) -> Optional[BlockInstance]:
        """Create and place a block from its serialized template.

        Returns:
            The created block, or None if the host could not create it
        """
        pass

    @abstractmethod
    def clean_up(self) -> None:
        """Tidy the workspace layout."""
        pass

    @abstractmethod
    def set_collapsed(self, block: BlockInstance, collapsed: bool) -> None:
        pass

    @abstractmethod
    def duplicate_block(self, block: BlockInstance) -> None:
        pass

    @abstractmethod
    def delete_block(self, block: BlockInstance) -> None:
        pass
