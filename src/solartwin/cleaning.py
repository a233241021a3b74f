"""Simulated panel cleaning action."""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from solartwin.models import CleaningResult, CleaningStatus

log = structlog.get_logger()


class CleaningActuator:
    """Runs a fixed-duration cleaning cycle.

    Cycles are independent: overlapping invocations each run to completion.
    """

    def __init__(
        self,
        duration_s: float = 3.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.duration_s = duration_s
        self._sleep = sleep
        self._clock = clock
        self._tasks: set[asyncio.Task[CleaningResult]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def trigger_cleaning(self) -> CleaningResult:
        """Run one cleaning cycle and return once it has finished."""
        started_at = int(self._clock() * 1000)
        log.info("cleaning_started", duration_s=self.duration_s)
        await self._sleep(self.duration_s)
        log.info("cleaning_completed", started_at=started_at)
        return CleaningResult(
            started_at=started_at,
            status=CleaningStatus.COMPLETED,
            duration_sec=self.duration_s,
        )

    def launch(self) -> CleaningResult:
        """Start a cleaning cycle without waiting for it (needs a running loop)."""
        task = asyncio.create_task(self.trigger_cleaning())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return CleaningResult(
            started_at=int(self._clock() * 1000),
            status=CleaningStatus.TRIGGERED,
            duration_sec=self.duration_s,
        )

    def _on_done(self, task: "asyncio.Task[CleaningResult]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("cleaning_failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for all launched cycles."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
