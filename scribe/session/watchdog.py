"""Single-shot, restartable silence timer."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TimeoutCallback = Callable[[], Awaitable[None]]


class SilenceWatchdog:
    """Fires a callback when no activity re-arms it within a fixed window.

    Only one timer is live at a time: ``arm()`` while armed cancels and
    replaces the running timer, it never stacks. The timer runs on the
    event loop clock, which is monotonic, so wall-clock adjustments do not
    shorten or extend the window. After firing the watchdog is disarmed
    and must be armed again to fire again.
    """

    def __init__(self, timeout: float, on_timeout: TimeoutCallback) -> None:
        self._timeout = timeout
        self._on_timeout = on_timeout
        self._task: asyncio.Task | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_armed(self) -> bool:
        return self._task is not None

    def arm(self) -> None:
        """Start the timer, replacing any live one."""
        self.disarm()
        self._task = asyncio.create_task(self._run())
        logger.debug("Silence watchdog armed for %.3fs", self._timeout)

    def disarm(self) -> None:
        """Cancel the live timer. Safe to call when not armed."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Silence watchdog disarmed")

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self._timeout)
        except asyncio.CancelledError:
            return
        # Disarm before the callback so it may re-arm or disarm freely.
        self._task = None
        logger.debug("Silence watchdog fired after %.3fs", self._timeout)
        try:
            await self._on_timeout()
        except Exception:
            logger.warning("Silence timeout handler failed", exc_info=True)
