from __future__ import annotations

"""JSON summaries written by the quality and completion stages."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from pipeline.collaborators import ChangeSummary, QualityReport, Screenshot
from pipeline.vocabulary import DataKey


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def file_timestamp(moment: datetime | None = None) -> str:
    """ISO timestamp safe for file names (``:`` and ``.`` replaced)."""

    moment = moment or _utcnow()
    return moment.isoformat().replace(":", "-").replace(".", "-").replace("+", "_")


def format_duration(seconds: float) -> str:
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class ReportWriter:
    """Writes pydantic models as indented JSON files."""

    def write(self, directory: Path, prefix: str, report: BaseModel) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{prefix}-{file_timestamp()}.json"
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        return path


# Summary sections -------------------------------------------------------------


class ScreenshotStats(BaseModel):
    total: int = 0
    formats: List[str] = Field(default_factory=list)
    viewports: List[str] = Field(default_factory=list)
    total_size: int = 0

    @classmethod
    def from_screenshots(cls, screenshots: Sequence[Screenshot]) -> "ScreenshotStats":
        return cls(
            total=len(screenshots),
            formats=sorted({shot.format for shot in screenshots}),
            viewports=sorted({f"{s.viewport.width}x{s.viewport.height}" for s in screenshots}),
            total_size=sum(shot.size for shot in screenshots),
        )


class ChangeStats(BaseModel):
    total_images: int
    changed_images: int
    unchanged_images: int
    average_change: float
    change_percentage: int

    @classmethod
    def from_summary(cls, summary: ChangeSummary | None) -> Optional["ChangeStats"]:
        if summary is None:
            return None
        percentage = 0
        if summary.total_images:
            percentage = round(summary.changed_images / summary.total_images * 100)
        return cls(
            total_images=summary.total_images,
            changed_images=summary.changed_images,
            unchanged_images=summary.unchanged_images,
            average_change=summary.average_change,
            change_percentage=percentage,
        )


class QualityStats(BaseModel):
    total: int
    passed: int
    failed: int
    pass_rate: int
    average_score: int

    @classmethod
    def from_reports(cls, reports: Sequence[QualityReport]) -> Optional["QualityStats"]:
        if not reports:
            return None
        passed = sum(1 for report in reports if report.passed)
        return cls(
            total=len(reports),
            passed=passed,
            failed=len(reports) - passed,
            pass_rate=round(passed / len(reports) * 100),
            average_score=round(sum(r.overall_score for r in reports) / len(reports)),
        )


class Duration(BaseModel):
    ms: int
    seconds: int
    formatted: str

    @classmethod
    def between(cls, start: datetime, end: datetime) -> "Duration":
        elapsed = max((end - start).total_seconds(), 0.0)
        return cls(ms=int(elapsed * 1000), seconds=round(elapsed), formatted=format_duration(elapsed))


# Reports ------------------------------------------------------------------------


class QualityReportEntry(BaseModel):
    filename: str
    url: str
    viewport: str
    format: str
    size: int
    checks: List[Dict[str, Any]]
    overall_score: float
    passed: bool


class QualityAuditReport(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    summary: QualityStats
    reports: List[QualityReportEntry]

    @classmethod
    def from_reports(cls, reports: Sequence[QualityReport]) -> "QualityAuditReport":
        stats = QualityStats.from_reports(reports)
        if stats is None:
            raise ValueError("Cannot build a quality report without reports")
        entries = [
            QualityReportEntry(
                filename=report.screenshot.filename,
                url=report.screenshot.url,
                viewport=report.screenshot.viewport.name,
                format=report.screenshot.format,
                size=report.screenshot.size,
                checks=[check.model_dump() for check in report.checks],
                overall_score=report.overall_score,
                passed=report.passed,
            )
            for report in reports
        ]
        return cls(summary=stats, reports=entries)


class AuditInfo(BaseModel):
    timestamp: datetime
    type: str
    duration: Duration


class AuditResults(BaseModel):
    is_initial_run: bool = False
    mode: str
    screenshots: ScreenshotStats
    changes: ChangeStats | None = None
    quality: QualityStats | None = None


class AuditSummary(BaseModel):
    """Summary written when a cycle or a one-shot run completes."""

    audit: AuditInfo
    results: AuditResults
    files: Dict[str, Optional[str]] = Field(default_factory=dict)
    next_actions: List[str] = Field(default_factory=list)
    completion_message: str | None = None


def build_audit_summary(
    data: Mapping[str, Any],
    *,
    audit_type: str,
    mode: str,
    next_actions: Sequence[str],
    completion_message: str | None = None,
) -> AuditSummary:
    """Assemble an AuditSummary from the shared data of the finished cycle."""

    end = _utcnow()
    start = data.get(DataKey.CYCLE_START_TIME) or end
    captured = data.get(DataKey.CAPTURED_SCREENSHOTS) or data.get(DataKey.CURRENT_SCREENSHOTS) or []
    quality_path = data.get(DataKey.QUALITY_REPORT_PATH)

    return AuditSummary(
        audit=AuditInfo(timestamp=end, type=audit_type, duration=Duration.between(start, end)),
        results=AuditResults(
            is_initial_run=bool(data.get(DataKey.IS_INITIAL_RUN)),
            mode=mode,
            screenshots=ScreenshotStats.from_screenshots(captured),
            changes=ChangeStats.from_summary(data.get(DataKey.CHANGE_SUMMARY)),
            quality=QualityStats.from_reports(data.get(DataKey.QUALITY_REPORTS) or []),
        ),
        files={"quality_report": str(quality_path) if quality_path else None},
        next_actions=list(next_actions),
        completion_message=completion_message,
    )


__all__ = [
    "AuditSummary",
    "ChangeStats",
    "Duration",
    "QualityAuditReport",
    "QualityStats",
    "ReportWriter",
    "ScreenshotStats",
    "build_audit_summary",
    "file_timestamp",
    "format_duration",
]
