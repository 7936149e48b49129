from __future__ import annotations

"""Completion stages: end of a monitor cycle and the two one-shot endings."""

from pathlib import Path
from typing import Sequence

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition, on
from pipeline import events
from pipeline.collaborators import ChangeDetector
from pipeline.reports import ReportWriter, build_audit_summary
from pipeline.stages.base import PipelineStage, reset_cycle
from pipeline.vocabulary import DataKey, EventType, Stage


class CompletionStage(PipelineStage):
    """Writes the audit summary for the finished cycle."""

    audit_type = "audit"
    next_actions: Sequence[str] = ()
    completion_message: str | None = None

    def __init__(self, name: str, *, writer: ReportWriter | None = None) -> None:
        super().__init__(name)
        self.writer = writer or ReportWriter()

    def write_summary(self, context: StateContext) -> Path:
        config = self.config(context)
        mode = self.mode(context)
        summary = build_audit_summary(
            context.data,
            audit_type=self.audit_type,
            mode=mode.value if mode else "unknown",
            next_actions=self.next_actions,
            completion_message=self.completion_message,
        )
        path = self.writer.write(config.audit_summaries_dir, self.audit_type, summary)
        context.logger.info("Audit summary written to %s", path)
        return path


class AuditCompleteState(CompletionStage):
    """Closes a monitor cycle and hands control back to MONITORING."""

    audit_type = "audit-summary"
    next_actions = ("Continue monitoring for changes",)

    def __init__(self, *, writer: ReportWriter | None = None) -> None:
        super().__init__(Stage.AUDIT_COMPLETE, writer=writer)

    async def execute(self, context: StateContext) -> Event | None:
        summary = context.data.get(DataKey.CHANGE_SUMMARY)
        if context.data.get(DataKey.IS_INITIAL_RUN) or (summary and summary.changed_images):
            self.write_summary(context)
        else:
            context.logger.info("Cycle finished without changes")

        reset_cycle(context.data)
        return events.cycle_complete()

    def get_transitions(self) -> list[Transition]:
        return [on(EventType.CYCLE_COMPLETE).go_to(Stage.MONITORING)]


class OneShotCompleteState(CompletionStage):
    """Terminal stage: writes the summary, cleans temporary files and stops."""

    def __init__(self, name: str, detector: ChangeDetector, *, writer: ReportWriter | None = None) -> None:
        super().__init__(name, writer=writer)
        self.detector = detector

    async def execute(self, context: StateContext) -> Event | None:
        self.write_summary(context)
        try:
            await self.detector.cleanup_temp_files(self.config(context).temp_dir)
        except Exception as exc:
            context.logger.warning("Temporary file cleanup failed: %s", exc)
        context.logger.info("%s finished", self.name)
        return None

    def get_transitions(self) -> list[Transition]:
        return []


class TriggerCompleteState(OneShotCompleteState):
    audit_type = "trigger-complete"
    next_actions = ("Run again with trigger mode for another check",)
    completion_message = "Triggered run complete"

    def __init__(self, detector: ChangeDetector, *, writer: ReportWriter | None = None) -> None:
        super().__init__(Stage.TRIGGER_COMPLETE, detector, writer=writer)


class ScheduleCompleteState(OneShotCompleteState):
    audit_type = "schedule-complete"
    next_actions = ("Wait for the next scheduled run",)
    completion_message = "Scheduled run complete"

    def __init__(self, detector: ChangeDetector, *, writer: ReportWriter | None = None) -> None:
        super().__init__(Stage.SCHEDULE_COMPLETE, detector, writer=writer)


__all__ = [
    "AuditCompleteState",
    "CompletionStage",
    "OneShotCompleteState",
    "ScheduleCompleteState",
    "TriggerCompleteState",
]
