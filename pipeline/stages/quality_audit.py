from __future__ import annotations

"""QUALITY_AUDIT: validate the captured screenshots against the quality rules."""

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition, on
from pipeline import events
from pipeline.collaborators import QualityValidator
from pipeline.reports import QualityAuditReport, ReportWriter
from pipeline.stages.base import GIVE_UP_ROUTES, RetryingStage
from pipeline.vocabulary import DataKey, EventType, Stage


class QualityAuditState(RetryingStage):
    """Consumes ``captured_screenshots``; produces ``quality_reports``.

    A failed audit goes back to RECIPE_EXECUTION to recapture while budget
    remains.
    """

    def __init__(
        self,
        validator: QualityValidator,
        *,
        max_attempts: int = 2,
        writer: ReportWriter | None = None,
    ) -> None:
        super().__init__(Stage.QUALITY_AUDIT, max_attempts=max_attempts)
        self.validator = validator
        self.writer = writer or ReportWriter()

    async def execute(self, context: StateContext) -> Event | None:
        config = self.config(context)
        screenshots = context.data.get(DataKey.CAPTURED_SCREENSHOTS) or []
        if not screenshots:
            return await self.fail(
                context, _failed, "No screenshots available for quality audit"
            )

        try:
            reports = await self.validator.validate_many(screenshots, config.quality)
        except Exception as exc:
            return await self.fail(context, _failed, f"Quality audit error: {exc}")

        context.data[DataKey.QUALITY_REPORTS] = reports
        summary = context.data.get(DataKey.CHANGE_SUMMARY)
        if reports and (
            context.data.get(DataKey.IS_INITIAL_RUN) or (summary and summary.changed_images)
        ):
            path = self.writer.write(
                config.quality_reports_dir, "quality-report", QualityAuditReport.from_reports(reports)
            )
            context.data[DataKey.QUALITY_REPORT_PATH] = path
            context.logger.info("Quality report written to %s", path)

        passed = sum(1 for report in reports if report.passed)
        pass_rate = passed / len(reports) * 100 if reports else 0.0
        context.logger.info(
            "Quality audit: %d/%d passed (%.0f%%)", passed, len(reports), pass_rate
        )

        if pass_rate >= config.quality.min_pass_rate:
            self.succeed(context)
            return events.quality_check_passed()

        issues = [
            f"{report.screenshot.filename}: {check.message}"
            for report in reports
            if not report.passed
            for check in report.checks
            if not check.passed
        ]
        context.logger.warning("Quality issues: %s", "; ".join(issues) or "none reported")
        return await self.fail(
            context,
            lambda reason: events.quality_check_failed([reason, *issues]),
            f"Pass rate {pass_rate:.0f}% below {config.quality.min_pass_rate:.0f}%",
        )

    def get_transitions(self) -> list[Transition]:
        return [
            on(EventType.QUALITY_CHECK_PASSED).go_to(Stage.DISTRIBUTION),
            *self.retry.transitions(
                EventType.QUALITY_CHECK_FAILED,
                Stage.RECIPE_EXECUTION,
                GIVE_UP_ROUTES,
                key=DataKey.WORKFLOW_MODE,
            ),
        ]


def _failed(reason: str) -> Event:
    return events.quality_check_failed([reason])


__all__ = ["QualityAuditState"]
