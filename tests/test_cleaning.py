"""Tests for the simulated cleaning actuator."""

import asyncio

import pytest
from structlog.testing import capture_logs

from solartwin.cleaning import CleaningActuator
from solartwin.models import CleaningStatus


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def actuator(sleep: RecordingSleep) -> CleaningActuator:
    return CleaningActuator(duration_s=3.0, sleep=sleep, clock=lambda: 1_700_000_000.0)


class TestTriggerCleaning:
    def test_completes_after_duration(self, actuator: CleaningActuator, sleep: RecordingSleep) -> None:
        result = asyncio.run(actuator.trigger_cleaning())

        assert result.status == CleaningStatus.COMPLETED
        assert result.duration_sec == 3.0
        assert result.started_at == 1_700_000_000_000
        assert sleep.calls == [3.0]

    def test_overlapping_cycles_are_independent(self) -> None:
        actuator = CleaningActuator(duration_s=0.01)

        async def scenario() -> list[object]:
            return list(await asyncio.gather(actuator.trigger_cleaning(), actuator.trigger_cleaning()))

        results = asyncio.run(scenario())
        assert len(results) == 2
        assert all(r.status == CleaningStatus.COMPLETED for r in results)  # type: ignore[attr-defined]


class TestLaunch:
    def test_returns_immediately_as_triggered(
        self, actuator: CleaningActuator, sleep: RecordingSleep
    ) -> None:
        async def scenario() -> tuple[object, int, int]:
            result = actuator.launch()
            in_flight = actuator.in_flight
            await actuator.drain()
            return result, in_flight, actuator.in_flight

        result, in_flight, after = asyncio.run(scenario())

        assert result.status == CleaningStatus.TRIGGERED  # type: ignore[attr-defined]
        assert in_flight == 1
        assert after == 0
        assert sleep.calls == [3.0]

    def test_failure_is_contained(self) -> None:
        async def broken_sleep(seconds: float) -> None:
            raise RuntimeError("actuator jammed")

        actuator = CleaningActuator(sleep=broken_sleep)

        async def scenario() -> int:
            actuator.launch()
            await actuator.drain()
            await asyncio.sleep(0)
            return actuator.in_flight

        assert asyncio.run(scenario()) == 0

    def test_failure_is_logged_with_traceback(self) -> None:
        async def broken_sleep(seconds: float) -> None:
            raise RuntimeError("actuator jammed")

        actuator = CleaningActuator(sleep=broken_sleep)

        async def scenario() -> None:
            actuator.launch()
            await actuator.drain()
            await asyncio.sleep(0)

        with capture_logs() as logs:
            asyncio.run(scenario())

        failures = [e for e in logs if e["event"] == "cleaning_failed"]
        assert len(failures) == 1
        assert isinstance(failures[0]["exc_info"], RuntimeError)
