"""Message catalog accessor - read-only localization lookup.

Wraps the host editor's key -> string message dictionary. Lookups
never raise: a missing key, a non-string value, or a host failure
all resolve to None.

Usage:
    from blockpalette.host.messages import MessageCatalog

    catalog = MessageCatalog({"MOTION_MOVESTEPS": "move %1 steps"})
    catalog.lookup("MOTION_MOVESTEPS")  # "move %1 steps"
    catalog.lookup("NOPE")  # None

    # Provider form: re-read on every call so a locale switch is seen
    catalog = MessageCatalog(lambda: editor.messages)
"""

from typing import Callable, Mapping, Optional, Union

from blockpalette.core.logging import get_logger

logger = get_logger(__name__)

MessageSource = Union[Mapping[str, object], Callable[[], Optional[Mapping[str, object]]], None]


class MessageCatalog:
    """Read-only view over a host message dictionary."""

    def __init__(self, source: MessageSource = None):
        self._source = source

    def _messages(self) -> Optional[Mapping[str, object]]:
        if self._source is None:
            return None
        if callable(self._source):
            return self._source()
        return self._source

    def lookup(self, key: str) -> Optional[str]:
        """Look up a message by key.

        Args:
            key: Message key, e.g. "BKY_MOTION_MOVESTEPS"

        Returns:
            The message string, or None if absent or unreadable
        """
        try:
            messages = self._messages()
            if not messages:
                return None
            value = messages.get(key)
        except Exception as e:
            logger.debug(
                "Message lookup failed",
                extra={"context": {"key": key, "error": str(e)}},
            )
            return None
        if isinstance(value, str) and value:
            return value
        return None

    def entries(self) -> list[tuple[str, str]]:
        """Snapshot of all string-valued entries, in catalog order.

        Returns an empty list when the host catalog is missing or fails.
        """
        try:
            messages = self._messages()
            if not messages:
                return []
            return [(k, v) for k, v in messages.items() if isinstance(k, str) and isinstance(v, str)]
        except Exception as e:
            logger.debug("Message scan failed", extra={"context": {"error": str(e)}})
            return []
