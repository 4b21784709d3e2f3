"""Interactive block pick - "click a block to ..." flows.

Commands like Duplicate and Delete need a target block. The picker
asks the host to listen for the next block click, and gives up after
a timeout or on Escape. At most one pick is pending at a time:
starting a new one cancels the previous one.

The actual listening (pointer hit-testing, overlay prompt, key
handling) is the host's job through PickHost. Timeouts go through
an injectable Scheduler so tests can drive them by hand.

Threading: the timeout callback, and with it PickHost release(), runs
wherever the Scheduler fires it. ThreadingScheduler fires on a timer
thread, which suits headless use only. A host with a UI event loop
should pass a Scheduler that posts onto that loop, so release() and
the prompt teardown happen on the UI thread.

Usage:
    from blockpalette.interaction.pick import BlockPicker

    picker = BlockPicker(host, ThreadingScheduler(), timeout_seconds=5.0)
    picker.start("delete", workspace.delete_block)
    ...
    picker.cancel()  # safe to call any number of times
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from blockpalette.core.config import DEFAULT_PICK_TIMEOUT_SECONDS
from blockpalette.core.logging import get_logger

logger = get_logger(__name__)


class Cancellable(ABC):
    """Handle to something that can be called off."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Runs a callback after a delay."""

    @abstractmethod
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> Cancellable:
        pass


class _TimerHandle(Cancellable):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon threading.Timer objects.

    Callbacks run on the timer thread, not the caller's. UI hosts should
    inject their own Scheduler instead.
    """

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> Cancellable:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        return _TimerHandle(timer)


class PickHost(ABC):
    """Host side of a pick: listener registration and prompt display."""

    @abstractmethod
    def listen(
        self,
        prompt: str,
        on_block: Callable[[Any], None],
        on_escape: Callable[[], None],
    ) -> Callable[[], None]:
        """Start listening for a block click.

        Args:
            prompt: Text to show while waiting
            on_block: Called with the clicked block
            on_escape: Called when the user presses Escape

        Returns:
            Function that removes the listeners and the prompt
        """
        pass


@dataclass
class PendingPick:
    """The one pick currently waiting for a click."""

    action_name: str
    release: Optional[Callable[[], None]] = None
    timer: Optional[Cancellable] = None


class BlockPicker:
    """Runs at most one pending "click a block" flow at a time.

    Args:
        host: Listener registration and prompt display
        scheduler: Timeout source; see the module docstring on threading.
            Defaults to ThreadingScheduler
        timeout_seconds: How long a pick waits for a click
    """

    def __init__(
        self,
        host: PickHost,
        scheduler: Optional[Scheduler] = None,
        timeout_seconds: float = DEFAULT_PICK_TIMEOUT_SECONDS,
    ):
        self._host = host
        if scheduler is None:
            logger.debug("No scheduler injected, pick timeouts fire on a timer thread")
            scheduler = ThreadingScheduler()
        self._scheduler = scheduler
        self._timeout_seconds = timeout_seconds
        self._pending: Optional[PendingPick] = None
        # Timer callbacks arrive on another thread with ThreadingScheduler
        self._lock = threading.RLock()

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    @property
    def pending_action(self) -> Optional[str]:
        pending = self._pending
        return pending.action_name if pending else None

    def start(self, action_name: str, action: Callable[[Any], None]) -> bool:
        """Wait for the user to click a block, then run action on it.

        Args:
            action_name: Verb shown in the prompt, e.g. "duplicate"
            action: Called with the picked block

        Returns:
            True if the pick is now pending, False if the host refused
        """
        with self._lock:
            self.cancel()

            pending = PendingPick(action_name=action_name)
            self._pending = pending
            prompt = f"Click a block to {action_name}... (ESC to cancel)"

            try:
                pending.release = self._host.listen(
                    prompt,
                    lambda block: self._on_block(pending, action, block),
                    lambda: self._on_escape(pending),
                )
                pending.timer = self._scheduler.call_later(
                    self._timeout_seconds, lambda: self._on_timeout(pending)
                )
            except Exception as e:
                logger.warning(
                    "Could not start block pick",
                    extra={"context": {"action": action_name, "error": str(e)}},
                )
                self.cancel()
                return False

            logger.debug(
                "Block pick started",
                extra={"context": {"action": action_name, "timeout": self._timeout_seconds}},
            )
            return True

    def cancel(self) -> None:
        """Cancel the pending pick, if any. Idempotent."""
        with self._lock:
            pending = self._pending
            if pending is None:
                return
            self._pending = None

        if pending.timer is not None:
            pending.timer.cancel()
        if pending.release is not None:
            try:
                pending.release()
            except Exception as e:
                logger.warning(
                    "Releasing pick listeners failed",
                    extra={"context": {"action": pending.action_name, "error": str(e)}},
                )
        logger.debug("Block pick ended", extra={"context": {"action": pending.action_name}})

    # ------------------------------------------------------------------
    # Host callbacks
    # ------------------------------------------------------------------

    def _is_current(self, pending: PendingPick) -> bool:
        return self._pending is pending

    def _on_block(self, pending: PendingPick, action: Callable[[Any], None], block: Any) -> None:
        with self._lock:
            if not self._is_current(pending):
                return
            self.cancel()

        try:
            action(block)
        except Exception as e:
            logger.error(
                f"{pending.action_name} failed",
                extra={"context": {"action": pending.action_name, "error": str(e)}},
                exc_info=True,
            )

    def _on_escape(self, pending: PendingPick) -> None:
        with self._lock:
            if self._is_current(pending):
                self.cancel()

    def _on_timeout(self, pending: PendingPick) -> None:
        with self._lock:
            if self._is_current(pending):
                logger.info(
                    "Block pick timed out",
                    extra={"context": {"action": pending.action_name}},
                )
                self.cancel()
