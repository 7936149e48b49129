from __future__ import annotations

"""In-memory collaborators and shared fixtures for the pipeline tests."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Set

import pytest

from engine.context import StateContext
from engine.machine import MachineSettings
from pipeline.collaborators import (
    CaptureTarget,
    Collaborators,
    ComparisonResult,
    QualityCheck,
    QualityReport,
    RecipeResult,
    SchedulerStatus,
    Screenshot,
)
from pipeline.config import (
    ChangeDetectionConfig,
    MonitoringConfig,
    QualityConfig,
    Recipe,
    RecipeStep,
    RetryConfig,
    ScreenshotConfig,
    WorkflowConfig,
    config_payload,
)
from pipeline.vocabulary import DataKey, WorkflowMode

STAMP = "2024-05-01T10-20-30-456Z"


def write_shot(directory: Path, name: str, content: bytes, options: ScreenshotConfig, url: str, stamp: bool) -> Screenshot:
    directory.mkdir(parents=True, exist_ok=True)
    filename = f"{name}-{STAMP}.png" if stamp else f"{name}.png"
    path = directory / filename
    path.write_bytes(content)
    return Screenshot(
        filename=filename,
        path=path,
        url=url,
        format="png",
        viewport=options.viewports[0],
        size=len(content),
    )


class FakeCapture:
    def __init__(self) -> None:
        self.content: Dict[str, bytes] = {}
        self.unreachable: Set[str] = set()
        self.initialized = 0
        self.cleaned = 0
        self.captures: List[Path] = []

    async def initialize(self) -> None:
        self.initialized += 1

    async def cleanup(self) -> None:
        self.cleaned += 1

    async def is_url_accessible(self, url: str) -> bool:
        return url not in self.unreachable

    async def capture_many(
        self,
        targets: Sequence[CaptureTarget],
        output_dir: Path,
        options: ScreenshotConfig,
        use_timestamp: bool,
    ) -> List[Screenshot]:
        shots = [
            write_shot(
                output_dir,
                target.filename,
                self.content.get(target.filename, b"original"),
                options,
                target.url,
                use_timestamp,
            )
            for target in targets
        ]
        self.captures.extend(shot.path for shot in shots)
        return shots


class FakeRecipes:
    def __init__(self) -> None:
        self.errors: Dict[str, List[str]] = {}
        self.failing: Set[str] = set()
        self.fail_calls = 0
        self.calls = 0

    def validate_recipe(self, recipe: Recipe) -> List[str]:
        return list(self.errors.get(recipe.name, []))

    async def execute_recipes(
        self,
        recipes: Sequence[Recipe],
        output_dir: Path,
        options: ScreenshotConfig,
        use_timestamp: bool,
    ) -> List[RecipeResult]:
        self.calls += 1
        failing_call = self.calls <= self.fail_calls
        results = []
        for recipe in recipes:
            if failing_call or recipe.name in self.failing:
                results.append(RecipeResult(recipe_name=recipe.name, success=False, error="timeout"))
                continue
            shots = [
                write_shot(output_dir, f"{recipe.name}-recipe", b"recipe", options, step.url or "", use_timestamp)
                for step in recipe.steps
                if step.type == "navigate"
            ]
            results.append(RecipeResult(recipe_name=recipe.name, success=True, screenshots=shots))
        return results


class FakeDetector:
    def __init__(self) -> None:
        self.cleanups: List[Path] = []

    async def compare_images(self, baseline: Path, current: Path, options: ChangeDetectionConfig) -> ComparisonResult:
        changed = baseline.read_bytes() != current.read_bytes()
        return ComparisonResult(
            filename=baseline.name,
            baseline_path=baseline,
            current_path=current,
            percentage_difference=50.0 if changed else 0.0,
            has_changed=changed,
        )

    async def cleanup_temp_files(self, directory: Path) -> None:
        self.cleanups.append(directory)
        if directory.is_dir():
            for path in directory.iterdir():
                if path.is_file():
                    path.unlink()


class FakeValidator:
    def __init__(self) -> None:
        self.fail_calls = 0
        self.calls = 0

    async def validate_many(self, screenshots: Sequence[Screenshot], config: QualityConfig) -> List[QualityReport]:
        self.calls += 1
        passed = self.calls > self.fail_calls
        return [
            QualityReport(
                screenshot=shot,
                checks=[QualityCheck(name="size", passed=passed, message="ok" if passed else "too small", score=100 if passed else 0)],
                overall_score=100 if passed else 0,
                passed=passed,
            )
            for shot in screenshots
        ]


class FakeScheduler:
    def __init__(self) -> None:
        self.callback = None
        self.starts: List[dict] = []
        self.stops = 0

    async def start(self, interval_seconds, callback, *, run_on_start=False) -> None:
        self.callback = callback
        self.starts.append({"interval": interval_seconds, "run_on_start": run_on_start})
        if run_on_start:
            callback("manual")

    async def stop(self) -> None:
        self.stops += 1
        self.callback = None

    def trigger_manual_run(self) -> None:
        if self.callback is not None:
            self.callback("manual")

    def fire(self) -> None:
        if self.callback is not None:
            self.callback("scheduled")

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(is_running=self.callback is not None)


@dataclass
class Fakes:
    capture: FakeCapture = field(default_factory=FakeCapture)
    recipes: FakeRecipes = field(default_factory=FakeRecipes)
    detector: FakeDetector = field(default_factory=FakeDetector)
    validator: FakeValidator = field(default_factory=FakeValidator)
    scheduler: FakeScheduler = field(default_factory=FakeScheduler)

    @property
    def collaborators(self) -> Collaborators:
        return Collaborators(
            capture=self.capture,
            recipes=self.recipes,
            detector=self.detector,
            validator=self.validator,
            scheduler_factory=lambda: self.scheduler,
        )


@pytest.fixture
def fakes() -> Fakes:
    return Fakes()


@pytest.fixture
def config(tmp_path: Path) -> WorkflowConfig:
    return WorkflowConfig(
        monitoring=MonitoringConfig(interval=1, idle_wait=0.001),
        recipes=[
            Recipe(
                name="home",
                steps=[RecipeStep(type="navigate", url="https://example.test/", filename="home")],
            )
        ],
        retry=RetryConfig(delay_seconds=0),
        engine=MachineSettings(poll_interval=0, error_backoff=0, max_consecutive_errors=5, validate_targets=True),
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def make_context(config: WorkflowConfig):
    def factory(mode: WorkflowMode = WorkflowMode.TRIGGER, **data) -> StateContext:
        values = {DataKey.WORKFLOW_MODE: mode}
        values.update(data)
        return StateContext(config=config_payload(config), data=values)

    return factory
