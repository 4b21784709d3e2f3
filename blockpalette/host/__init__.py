"""Host package - Interfaces to the host block editor.

Modules:
    - messages: Read-only localization message catalog
    - workspace: Workspace accessor interface and host value types
"""

from blockpalette.host.messages import MessageCatalog
from blockpalette.host.workspace import BlockInstance, Variable, WorkspaceAccessor

__all__ = [
    "MessageCatalog",
    "WorkspaceAccessor",
    "BlockInstance",
    "Variable",
]
