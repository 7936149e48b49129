from __future__ import annotations

"""Tests for the asyncio interval scheduler."""

import asyncio

import pytest

from pipeline.collaborators import Scheduler
from pipeline.scheduler import IntervalScheduler, SchedulerError


def test_satisfies_scheduler_protocol() -> None:
    assert isinstance(IntervalScheduler(), Scheduler)


def test_ticks_until_stopped() -> None:
    calls: list[str] = []
    scheduler = IntervalScheduler(min_interval=0.001)

    async def scenario() -> None:
        await scheduler.start(0.01, calls.append)
        await asyncio.sleep(0.055)
        await scheduler.stop()
        stopped_at = len(calls)
        await asyncio.sleep(0.03)
        assert len(calls) == stopped_at

    asyncio.run(scenario())

    assert calls
    assert set(calls) == {"scheduled"}
    assert not scheduler.is_running


def test_run_on_start_fires_manual_immediately() -> None:
    calls: list[str] = []
    scheduler = IntervalScheduler(min_interval=0.001)

    async def scenario() -> None:
        await scheduler.start(10, calls.append, run_on_start=True)
        assert calls == ["manual"]
        await scheduler.stop()

    asyncio.run(scenario())


def test_manual_trigger_requires_running_scheduler() -> None:
    calls: list[str] = []
    scheduler = IntervalScheduler(min_interval=0.001)

    with pytest.raises(SchedulerError, match="not running"):
        scheduler.trigger_manual_run()

    async def scenario() -> None:
        await scheduler.start(10, calls.append)
        scheduler.trigger_manual_run()
        await scheduler.stop()

    asyncio.run(scenario())
    assert calls == ["manual"]


def test_rejects_short_interval_and_double_start() -> None:
    scheduler = IntervalScheduler(min_interval=60)

    async def scenario() -> None:
        with pytest.raises(SchedulerError, match="Minimum interval"):
            await scheduler.start(1, lambda kind: None)
        await scheduler.start(60, lambda kind: None)
        with pytest.raises(SchedulerError, match="already running"):
            await scheduler.start(60, lambda kind: None)
        await scheduler.stop()

    asyncio.run(scenario())


def test_status_reports_interval_and_next_run() -> None:
    scheduler = IntervalScheduler(min_interval=0.001)

    async def scenario() -> None:
        await scheduler.start(5, lambda kind: None)
        await asyncio.sleep(0)
        status = scheduler.status()
        assert status.is_running
        assert status.interval_seconds == 5
        assert status.next_run is not None
        await scheduler.stop()

    asyncio.run(scenario())
    assert scheduler.status().is_running is False
    assert scheduler.status().interval_seconds is None


def test_callback_errors_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    def broken(kind: str) -> None:
        raise RuntimeError("callback broke")

    scheduler = IntervalScheduler(min_interval=0.001)

    async def scenario() -> None:
        await scheduler.start(10, broken, run_on_start=True)
        await scheduler.stop()

    asyncio.run(scenario())
    assert "Scheduler callback failed for manual event" in caplog.text
