from __future__ import annotations

"""Names shared across the screenshot pipeline: modes, stages, events and data keys."""

from enum import StrEnum


class WorkflowMode(StrEnum):
    """Supported workflow execution modes."""

    MONITOR = "monitor"
    """Continuous monitoring on a schedule; loops until stopped."""

    TRIGGER = "trigger"
    """Run the pipeline once, immediately, then stop."""

    SCHEDULE = "schedule"
    """Wait for the next scheduled tick, run once, then stop."""

    @classmethod
    def parse(cls, value: str) -> "WorkflowMode":
        try:
            return cls(value)
        except ValueError as exc:
            available = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown workflow mode: {value}. Available modes: {available}") from exc


class Stage(StrEnum):
    """Registry names of the pipeline stages."""

    MONITORING = "MONITORING"
    CHANGE_DETECTION = "CHANGE_DETECTION"
    RECIPE_EXECUTION = "RECIPE_EXECUTION"
    QUALITY_AUDIT = "QUALITY_AUDIT"
    DISTRIBUTION = "DISTRIBUTION"
    AUDIT_COMPLETE = "AUDIT_COMPLETE"
    TRIGGER_COMPLETE = "TRIGGER_COMPLETE"
    SCHEDULE_COMPLETE = "SCHEDULE_COMPLETE"


class EventType(StrEnum):
    """Event types emitted by the pipeline stages."""

    SCHEDULE_REACHED = "SCHEDULE_REACHED"
    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    VISUAL_CHANGE_DETECTED = "VISUAL_CHANGE_DETECTED"
    NO_CHANGE_DETECTED = "NO_CHANGE_DETECTED"
    SCREENSHOTS_CAPTURED = "SCREENSHOTS_CAPTURED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    QUALITY_CHECK_PASSED = "QUALITY_CHECK_PASSED"
    QUALITY_CHECK_FAILED = "QUALITY_CHECK_FAILED"
    SYNC_SUCCESSFUL = "SYNC_SUCCESSFUL"
    SYNC_FAILED = "SYNC_FAILED"
    CYCLE_COMPLETE = "CYCLE_COMPLETE"


class DataKey(StrEnum):
    """Keys of the shared data map and the stages that produce/consume them."""

    WORKFLOW_MODE = "workflow_mode"
    """Set by the builder; read by every mode fan-out guard."""

    CYCLE_START_TIME = "cycle_start_time"
    """Set by the builder and AUDIT_COMPLETE; read by completion stages."""

    TRIGGER_TYPE = "trigger_type"
    """Written by the MONITORING scheduler callback; consumed by MONITORING."""

    MANUAL_TRIGGER = "manual_trigger"
    """Set by callers to request a run; consumed by MONITORING."""

    IS_INITIAL_RUN = "is_initial_run"
    """Set by CHANGE_DETECTION when no baselines exist."""

    CURRENT_SCREENSHOTS = "current_screenshots"
    """Screenshots captured by CHANGE_DETECTION."""

    CHANGE_SUMMARY = "change_summary"
    """ChangeSummary from CHANGE_DETECTION; read by DISTRIBUTION and reports."""

    CAPTURED_SCREENSHOTS = "captured_screenshots"
    """Screenshots from RECIPE_EXECUTION; read by QUALITY_AUDIT and reports."""

    RECIPE_RESULTS = "recipe_results"
    """RecipeResult list from RECIPE_EXECUTION."""

    QUALITY_REPORTS = "quality_reports"
    """QualityReport list from QUALITY_AUDIT."""

    QUALITY_REPORT_PATH = "quality_report_path"
    """Path of the JSON quality report, when one was written."""


CYCLE_KEYS: tuple[DataKey, ...] = (
    DataKey.IS_INITIAL_RUN,
    DataKey.CURRENT_SCREENSHOTS,
    DataKey.CAPTURED_SCREENSHOTS,
    DataKey.CHANGE_SUMMARY,
    DataKey.QUALITY_REPORTS,
    DataKey.RECIPE_RESULTS,
    DataKey.QUALITY_REPORT_PATH,
    DataKey.TRIGGER_TYPE,
)
"""Per-cycle keys cleared by the completion stages."""


__all__ = ["CYCLE_KEYS", "DataKey", "EventType", "Stage", "WorkflowMode"]
