from __future__ import annotations

"""MONITORING: wait for the scheduler or a manual trigger."""

import asyncio

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition, on
from pipeline import events
from pipeline.collaborators import Scheduler, SchedulerStatus
from pipeline.stages.base import PipelineStage, reset_cycle
from pipeline.vocabulary import DataKey, EventType, Stage, WorkflowMode


class MonitoringState(PipelineStage):
    """Starts the scheduler on enter and waits for it to fire.

    Writes ``trigger_type`` from the scheduler callback and consumes it, along
    with the ``manual_trigger`` flag callers may set. Every entry starts a
    fresh cycle, after AUDIT_COMPLETE or a give-up route alike.

    The first time a run enters MONITORING the scheduler fires immediately,
    except in schedule mode, which waits for the first interval; later cycles
    wait for the interval.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        super().__init__(Stage.MONITORING)
        self.scheduler = scheduler

    async def enter(self, context: StateContext) -> None:
        await super().enter(context)
        settings = self.config(context).monitoring
        entries = sum(1 for snapshot in context.history if snapshot.state == self.name)
        reset_cycle(context.data)

        def on_tick(kind: str) -> None:
            context.data[DataKey.TRIGGER_TYPE] = kind

        await self.scheduler.start(
            settings.interval * 60,
            on_tick,
            run_on_start=entries <= 1 and self.mode(context) != WorkflowMode.SCHEDULE,
        )
        context.logger.info("Monitoring started with %g minute interval", settings.interval)

    async def execute(self, context: StateContext) -> Event | None:
        if context.data.get(DataKey.MANUAL_TRIGGER):
            context.data[DataKey.MANUAL_TRIGGER] = False
            return events.manual_trigger()

        trigger_type = context.data.pop(DataKey.TRIGGER_TYPE, None)
        if trigger_type == "scheduled":
            return events.schedule_reached()
        if trigger_type == "manual":
            return events.manual_trigger()

        await asyncio.sleep(self.config(context).monitoring.idle_wait)
        return None

    async def exit(self, context: StateContext) -> None:
        context.logger.info("Stopping monitoring scheduler")
        await self.scheduler.stop()
        await super().exit(context)

    def get_transitions(self) -> list[Transition]:
        return [
            on(EventType.SCHEDULE_REACHED).go_to(Stage.CHANGE_DETECTION),
            on(EventType.MANUAL_TRIGGER).go_to(Stage.CHANGE_DETECTION),
        ]

    def trigger_manual_run(self) -> None:
        self.scheduler.trigger_manual_run()

    def scheduler_status(self) -> SchedulerStatus:
        return self.scheduler.status()


__all__ = ["MonitoringState"]
