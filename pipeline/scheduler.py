from __future__ import annotations

"""Interval scheduler backed by an asyncio task."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from pipeline.collaborators import ScheduleCallback, SchedulerStatus

logger = logging.getLogger("workflow.scheduler")


class SchedulerError(Exception):
    """Raised for invalid scheduler operations."""


class IntervalScheduler:
    """Calls back every ``interval_seconds`` until stopped.

    Must be started from inside a running event loop.
    """

    def __init__(self, *, min_interval: float = 60.0) -> None:
        self._min_interval = min_interval
        self._interval: float | None = None
        self._callback: ScheduleCallback | None = None
        self._task: asyncio.Task[None] | None = None
        self._next_run: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    async def start(
        self,
        interval_seconds: float,
        callback: ScheduleCallback,
        *,
        run_on_start: bool = False,
    ) -> None:
        if self._task is not None:
            raise SchedulerError("Scheduler is already running")
        if interval_seconds < self._min_interval:
            raise SchedulerError(
                f"Minimum interval is {self._min_interval:g} seconds, got {interval_seconds:g}"
            )

        self._interval = interval_seconds
        self._callback = callback
        self._task = asyncio.create_task(self._tick_loop(interval_seconds))
        logger.debug("Scheduler started with %.1fs interval", interval_seconds)

        if run_on_start:
            self._emit("manual")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._task = None
        self._next_run = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Scheduler stopped")

    def trigger_manual_run(self) -> None:
        if self._task is None:
            raise SchedulerError("Scheduler is not running")
        self._emit("manual")

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            is_running=self.is_running,
            interval_seconds=self._interval if self.is_running else None,
            next_run=self._next_run,
        )

    async def _tick_loop(self, interval: float) -> None:
        while True:
            self._next_run = datetime.now(timezone.utc) + timedelta(seconds=interval)
            await asyncio.sleep(interval)
            self._emit("scheduled")

    def _emit(self, kind: str) -> None:
        if self._callback is None:
            return
        try:
            self._callback(kind)
        except Exception:
            logger.exception("Scheduler callback failed for %s event", kind)


__all__ = ["IntervalScheduler", "SchedulerError"]
