from __future__ import annotations

"""Collaborator protocols used by the stages and the values they return.

Browser automation, image diffing and image metadata inspection live behind
these protocols; the pipeline only depends on their shapes.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field

from pipeline.config import ChangeDetectionConfig, QualityConfig, Recipe, ScreenshotConfig, Viewport


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CaptureTarget(BaseModel):
    url: str
    filename: str


class Screenshot(BaseModel):
    """A captured image on disk."""

    filename: str
    path: Path
    url: str
    format: str = "png"
    viewport: Viewport
    size: int = 0
    timestamp: datetime = Field(default_factory=_utcnow)


class RecipeResult(BaseModel):
    recipe_name: str
    success: bool
    screenshots: List[Screenshot] = Field(default_factory=list)
    error: str | None = None
    duration_seconds: float = 0.0


class ComparisonResult(BaseModel):
    """Outcome of comparing one screenshot with its baseline."""

    filename: str
    baseline_path: Path
    current_path: Path
    pixel_difference: int = 0
    percentage_difference: float = 0.0
    has_changed: bool
    diff_path: Path | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ChangeSummary(BaseModel):
    total_images: int
    changed_images: int
    unchanged_images: int
    results: List[ComparisonResult] = Field(default_factory=list)
    average_change: float = 0.0
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_results(cls, results: Sequence[ComparisonResult]) -> "ChangeSummary":
        changed = sum(1 for result in results if result.has_changed)
        average = 0.0
        if results:
            average = round(sum(r.percentage_difference for r in results) / len(results), 2)
        return cls(
            total_images=len(results),
            changed_images=changed,
            unchanged_images=len(results) - changed,
            results=list(results),
            average_change=average,
        )


class QualityCheck(BaseModel):
    name: str
    passed: bool
    message: str
    score: float = 0.0


class QualityReport(BaseModel):
    screenshot: Screenshot
    checks: List[QualityCheck] = Field(default_factory=list)
    overall_score: float = 0.0
    passed: bool
    timestamp: datetime = Field(default_factory=_utcnow)


@runtime_checkable
class CaptureService(Protocol):
    async def initialize(self) -> None: ...

    async def cleanup(self) -> None: ...

    async def is_url_accessible(self, url: str) -> bool: ...

    async def capture_many(
        self,
        targets: Sequence[CaptureTarget],
        output_dir: Path,
        options: ScreenshotConfig,
        use_timestamp: bool,
    ) -> List[Screenshot]: ...


@runtime_checkable
class RecipeRunner(Protocol):
    def validate_recipe(self, recipe: Recipe) -> List[str]: ...

    async def execute_recipes(
        self,
        recipes: Sequence[Recipe],
        output_dir: Path,
        options: ScreenshotConfig,
        use_timestamp: bool,
    ) -> List[RecipeResult]: ...


@runtime_checkable
class ChangeDetector(Protocol):
    async def compare_images(
        self,
        baseline: Path,
        current: Path,
        options: ChangeDetectionConfig,
    ) -> ComparisonResult: ...

    async def cleanup_temp_files(self, directory: Path) -> None: ...


@runtime_checkable
class QualityValidator(Protocol):
    async def validate_many(
        self,
        screenshots: Sequence[Screenshot],
        config: QualityConfig,
    ) -> List[QualityReport]: ...


ScheduleCallback = Callable[[str], Any]
"""Called with ``"scheduled"`` or ``"manual"`` when the scheduler fires."""


class SchedulerStatus(BaseModel):
    is_running: bool
    interval_seconds: float | None = None
    next_run: datetime | None = None


@runtime_checkable
class Scheduler(Protocol):
    async def start(
        self,
        interval_seconds: float,
        callback: ScheduleCallback,
        *,
        run_on_start: bool = False,
    ) -> None: ...

    async def stop(self) -> None: ...

    def trigger_manual_run(self) -> None: ...

    def status(self) -> SchedulerStatus: ...


@dataclass
class Collaborators:
    """Services injected into the stages by the state factory."""

    capture: CaptureService
    recipes: RecipeRunner
    detector: ChangeDetector
    validator: QualityValidator
    scheduler_factory: Callable[[], Scheduler] | None = None
    """Defaults to an IntervalScheduler per workflow build."""


__all__ = [
    "CaptureService",
    "CaptureTarget",
    "ChangeDetector",
    "ChangeSummary",
    "Collaborators",
    "ComparisonResult",
    "QualityCheck",
    "QualityReport",
    "QualityValidator",
    "RecipeResult",
    "RecipeRunner",
    "ScheduleCallback",
    "Scheduler",
    "SchedulerStatus",
    "Screenshot",
]
