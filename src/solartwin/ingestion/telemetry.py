"""Synthetic panel telemetry with a diurnal output curve."""

import asyncio
import inspect
import math
import random
import time
from collections.abc import Awaitable, Callable

import structlog

from solartwin.models import PanelAttributes, TelemetryReading

log = structlog.get_logger()

Listener = Callable[[TelemetryReading], Awaitable[object] | object]

# Soiling oscillates between these bounds (fraction of output lost)
SOILING_MIN = 0.05
SOILING_SPAN = 0.15
NOISE_AMPLITUDE = 0.025


class TelemetryGenerator:
    """Emits a TelemetryReading to every listener at a fixed cadence."""

    def __init__(
        self,
        panel: PanelAttributes,
        interval_s: float = 600.0,
        time_compression: float = 6.0,
        seed: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.panel = panel
        self.interval_s = interval_s
        self.time_compression = time_compression
        self._rng = random.Random(seed)
        self._clock = clock
        self.started_at = clock()
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task[object]] = set()
        self._task: asyncio.Task[None] | None = None

    def add_listener(self, listener: Listener) -> None:
        """Register a callback. Registering twice delivers every reading twice."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        """Remove one registration of a callback, if present."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def simulated_hour(self, elapsed_s: float) -> float:
        """Map elapsed wall-clock seconds to a simulated hour of day."""
        return (elapsed_s * self.time_compression / 3600) % 24

    @staticmethod
    def sun_angle(hour: float) -> float:
        """Zero outside 06:00-18:00, peaking at noon."""
        return max(0.0, math.sin(((hour - 6) / 12) * math.pi))

    @staticmethod
    def soiling_loss(elapsed_s: float) -> float:
        minutes = elapsed_s / 60
        return SOILING_MIN + SOILING_SPAN * max(0.0, math.sin(minutes / 2))

    def sample(self, now: float | None = None) -> TelemetryReading:
        """Compute the reading for wall-clock time `now` (defaults to the clock)."""
        now = self._clock() if now is None else now
        elapsed = max(0.0, now - self.started_at)

        sun = self.sun_angle(self.simulated_hour(elapsed))
        soiling = self.soiling_loss(elapsed)
        noise = self._rng.uniform(-NOISE_AMPLITUDE, NOISE_AMPLITUDE)

        energy_kw = max(0.0, self.panel.rated_kw * sun * (1 - soiling + noise))
        return TelemetryReading(timestamp=int(now * 1000), energy_kw=energy_kw, panel=self.panel)

    def emit(self) -> TelemetryReading:
        """Sample once and hand the reading to every listener.

        Each listener runs inside its own failure boundary. Awaitables returned
        by a listener are scheduled as detached tasks on the running loop.
        """
        reading = self.sample()
        log.debug("telemetry_emitted", energy_kw=round(reading.energy_kw, 3))

        for listener in list(self._listeners):
            try:
                result = listener(reading)
            except Exception:
                log.exception("listener_failed", listener=repr(listener))
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

        return reading

    def _schedule(self, awaitable: Awaitable[object]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)
        task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: "asyncio.Task[object]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("listener_task_failed", exc_info=exc)

    async def run(self) -> None:
        """Emit immediately, then every `interval_s` until cancelled."""
        log.info("telemetry_started", interval_s=self.interval_s, panel_id=self.panel.panel_id)
        while True:
            self.emit()
            await asyncio.sleep(self.interval_s)

    def start(self) -> "asyncio.Task[None]":
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop ticking. In-flight listener tasks are left to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("telemetry_stopped")

    async def drain(self) -> None:
        """Wait for listener tasks scheduled so far."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
