"""Scan scheduling and the pause/resume state machine.

Scanning pauses once an order is placed and resumes only after every tracked
order has settled and the market window it was placed in has ended.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Optional

from hpbot.api.windows import DEFAULT_WINDOW_SECONDS, next_window_boundary
from hpbot.engine.types import SchedulerPhase, utcnow
from hpbot.utils.logging import get_logger

log = get_logger(__name__)

TickCallback = Callable[[], Awaitable[object]]


class ScanScheduler:
    """Owns the SCANNING/PAUSED phase and the two periodic loops."""

    def __init__(
        self,
        interval: float,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.interval = interval
        self.window_seconds = window_seconds
        self.clock = clock
        self.phase = SchedulerPhase.SCANNING
        self.current_market_end_time: Optional[datetime] = None
        self._tasks: list[asyncio.Task] = []
        self._cancelled: list[asyncio.Task] = []

    @property
    def is_paused(self) -> bool:
        return self.phase is SchedulerPhase.PAUSED

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def fallback_end_time(self, now: Optional[datetime] = None) -> datetime:
        return next_window_boundary(now or self.clock(), self.window_seconds)

    def pause(self, end_time: Optional[datetime] = None) -> None:
        """Stop scanning until ``end_time`` (default: end of the current window).

        Pausing again while paused only moves the end time.
        """
        end_time = end_time or self.fallback_end_time()
        if self.phase is SchedulerPhase.SCANNING:
            self.phase = self.phase.transition_to(SchedulerPhase.PAUSED)
        self.current_market_end_time = end_time
        log.info("Scanning paused", until=end_time.isoformat())

    def should_resume(self, tracked_count: int, now: Optional[datetime] = None) -> bool:
        """True when paused, nothing is tracked, and the market has ended."""
        if self.phase is not SchedulerPhase.PAUSED or tracked_count > 0:
            return False
        if self.current_market_end_time is None:
            return True
        return (now or self.clock()) >= self.current_market_end_time

    def resume(self) -> None:
        self.phase = self.phase.transition_to(SchedulerPhase.SCANNING)
        self.current_market_end_time = None
        log.info("Scanning resumed")

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        """Time left until the pause may end (zero if not paused)."""
        if self.current_market_end_time is None:
            return timedelta(0)
        return max(self.current_market_end_time - (now or self.clock()), timedelta(0))

    def start(self, scan_cb: TickCallback, track_cb: TickCallback) -> None:
        """Start the scan loop (fires now) and the tracking loop (fires after one interval)."""
        if self.is_running:
            log.warning("Scheduler already running")
            return
        self._tasks = [
            asyncio.create_task(self._loop("scan", scan_cb, initial_delay=0.0)),
            asyncio.create_task(self._loop("tracking", track_cb, initial_delay=self.interval)),
        ]

    def stop(self) -> None:
        """Cancel both loops. Neither fires again after this returns."""
        for task in self._tasks:
            task.cancel()
        self._cancelled.extend(self._tasks)
        self._tasks = []

    async def wait_stopped(self) -> None:
        """Wait for cancelled loops to finish unwinding."""
        tasks, self._cancelled = self._cancelled, []
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _loop(self, name: str, callback: TickCallback, initial_delay: float) -> None:
        if initial_delay:
            await asyncio.sleep(initial_delay)
        while True:
            try:
                await callback()
            except Exception as e:
                log.error("Periodic tick failed", loop=name, error=str(e))
            await asyncio.sleep(self.interval)
