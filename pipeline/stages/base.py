from __future__ import annotations

"""Shared routing tables and helpers for the pipeline stages."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, MutableMapping

from engine.context import StateContext
from engine.event import Event
from engine.routing import RETRY_COUNTS_KEY, RetryPolicy, fan_out
from engine.state import BaseState
from engine.transition import Transition
from pipeline.config import WorkflowConfig, workflow_config
from pipeline.vocabulary import CYCLE_KEYS, DataKey, Stage, WorkflowMode

COMPLETION_ROUTES: Mapping[WorkflowMode, Stage] = {
    WorkflowMode.TRIGGER: Stage.TRIGGER_COMPLETE,
    WorkflowMode.SCHEDULE: Stage.SCHEDULE_COMPLETE,
    WorkflowMode.MONITOR: Stage.AUDIT_COMPLETE,
}
"""Where a cycle ends, per mode."""

GIVE_UP_ROUTES: Mapping[WorkflowMode, Stage] = {
    WorkflowMode.TRIGGER: Stage.TRIGGER_COMPLETE,
    WorkflowMode.SCHEDULE: Stage.SCHEDULE_COMPLETE,
    WorkflowMode.MONITOR: Stage.MONITORING,
}
"""Where a stage goes once its retry budget is spent, per mode."""


def to_completion(event_type: str) -> list[Transition]:
    return fan_out(event_type, COMPLETION_ROUTES, key=DataKey.WORKFLOW_MODE)


def reset_cycle(data: MutableMapping[str, Any]) -> None:
    """Drop per-cycle keys and retry counters and restart the cycle clock."""

    for key in CYCLE_KEYS:
        data.pop(key, None)
    data.pop(RETRY_COUNTS_KEY, None)
    data[DataKey.CYCLE_START_TIME] = datetime.now(timezone.utc)


class PipelineStage(BaseState):
    """BaseState with typed access to the workflow configuration."""

    def config(self, context: StateContext) -> WorkflowConfig:
        return workflow_config(context)

    def mode(self, context: StateContext) -> WorkflowMode | None:
        value = context.data.get(DataKey.WORKFLOW_MODE)
        return WorkflowMode(value) if value else None


class RetryingStage(PipelineStage):
    """Stage with a bounded failure budget kept in the shared data."""

    def __init__(self, name: str, *, max_attempts: int) -> None:
        super().__init__(name)
        self.retry = RetryPolicy(name, max_attempts)

    async def fail(
        self,
        context: StateContext,
        event_factory: Callable[[str], Event],
        reason: str,
    ) -> Event:
        """Record a failure and return the failure event built from ``reason``.

        Sleeps for the configured delay first when the failure will be retried.
        """

        attempt = self.retry.record_failure(context.data)
        if self.retry.within_budget(context.data):
            context.logger.info(
                "%s failed (attempt %d/%d), retrying: %s",
                self.name,
                attempt,
                self.retry.max_attempts,
                reason,
            )
            await asyncio.sleep(self.config(context).retry.delay_seconds)
        else:
            context.logger.error(
                "%s failed after %d attempts: %s", self.name, attempt, reason
            )
        return event_factory(reason)

    def succeed(self, context: StateContext) -> None:
        self.retry.reset(context.data)


__all__ = [
    "COMPLETION_ROUTES",
    "GIVE_UP_ROUTES",
    "PipelineStage",
    "RetryingStage",
    "reset_cycle",
    "to_completion",
]
