"""One-shot delayed account refresh."""

import asyncio
import inspect
from typing import Optional

import structlog

from ..interfaces import RefreshTrigger

logger = structlog.get_logger(__name__)


class RefreshScheduler:
    """
    Schedules a single refresh callback after a delay.

    The callback is invoked, never awaited by the caller of `schedule()`. A
    coroutine returned by the callback is run as a task. Scheduling again
    replaces a refresh that has not fired yet, and `cancel()` drops it when the
    owning modal is torn down.
    """

    def __init__(self):
        self.logger = logger
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a scheduled refresh has not fired."""
        return self._handle is not None

    def schedule(self, delay: float, callback: RefreshTrigger) -> None:
        """Schedule `callback` after `delay` seconds on the running loop."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(delay, 0.0), self._fire, callback)
        self.logger.debug("Refresh scheduled", delay=delay)

    def _fire(self, callback: RefreshTrigger) -> None:
        self._handle = None
        result = callback()
        if inspect.isawaitable(result):
            self._task = asyncio.ensure_future(result)
            self._task.add_done_callback(self._log_failure)
        self.logger.debug("Refresh triggered")

    def _log_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Account refresh failed", error=str(exc), error_type=type(exc).__name__)

    def cancel(self) -> bool:
        """Cancel a refresh that has not fired. Returns True if one was dropped."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self.logger.debug("Refresh cancelled")
        return True
