"""
Visibility-aware poll ticker.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from ..core.config import settings
from ..core.errors import TransientNetworkError
from ..core.logger import logger, log_error


class PollScheduler:
    """
    Runs a poll coroutine on an interval.

    The interval is short while the view is visible and long while hidden.
    Becoming visible, gaining focus or an explicit trigger polls at once.
    Polls never overlap; a failed poll is logged and retried on the next tick.
    """

    def __init__(
        self,
        poll: Callable[[], Awaitable[Any]],
        visible_interval: Optional[float] = None,
        hidden_interval: Optional[float] = None,
        name: str = "poll",
    ):
        self._poll = poll
        self.visible_interval = (
            settings.SYNC_VISIBLE_POLL_SECONDS if visible_interval is None else visible_interval
        )
        self.hidden_interval = (
            settings.SYNC_HIDDEN_POLL_SECONDS if hidden_interval is None else hidden_interval
        )
        self.name = name
        self._visible = True
        self._wake = asyncio.Event()
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.poll_count = 0
        self.last_error: Optional[Exception] = None

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def interval(self) -> float:
        return self.visible_interval if self._visible else self.hidden_interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, poll_first: bool = True) -> None:
        """Start ticking on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(poll_first))
        logger.debug(f"{self.name} scheduler started ({self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug(f"{self.name} scheduler stopped")

    def trigger(self) -> None:
        """Poll as soon as possible instead of waiting out the interval."""
        self._wake.set()

    def set_visibility(self, visible: bool) -> None:
        was_visible = self._visible
        self._visible = visible
        if visible and not was_visible:
            self.trigger()

    def focus(self) -> None:
        self.trigger()

    async def poll_now(self) -> bool:
        """
        Run one poll, serialised with any other poll in flight.

        Returns:
            True if the poll succeeded
        """
        async with self._lock:
            try:
                await self._poll()
            except TransientNetworkError as e:
                self.last_error = e
                logger.warning(f"{self.name} poll failed, retrying next tick: {e.message}")
                return False
            except Exception as e:
                self.last_error = e
                log_error(e, {"poller": self.name})
                return False

            self.poll_count += 1
            self.last_error = None
            return True

    async def _run(self, poll_first: bool) -> None:
        if poll_first:
            await self.poll_now()
        while True:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            await self.poll_now()
