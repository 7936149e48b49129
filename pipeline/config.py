from __future__ import annotations

"""Configuration models for the screenshot workflow."""

from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping

from pydantic import BaseModel, Field

from engine.context import StateContext
from engine.machine import MachineSettings


class MonitoringConfig(BaseModel):
    interval: float = Field(default=60, ge=1)
    """Minutes between scheduled runs."""

    idle_wait: float = Field(default=1.0, ge=0)
    """Seconds MONITORING sleeps before reporting that nothing happened yet."""


class Viewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    name: str


class ScreenshotConfig(BaseModel):
    formats: List[str] = Field(default_factory=lambda: ["png"])
    viewports: List[Viewport] = Field(
        default_factory=lambda: [Viewport(width=1920, height=1080, name="desktop")]
    )
    quality: int = Field(default=90, ge=1, le=100)
    timeout: float = Field(default=30.0, gt=0)
    wait_for_navigation: bool = True


class ChangeDetectionConfig(BaseModel):
    threshold: float = 0.1
    include_aa: bool = False
    alpha: float = Field(default=0.1, ge=0, le=1)


class RecipeStep(BaseModel):
    type: str
    url: str | None = None
    filename: str | None = None
    selector: str | None = None
    value: str | None = None
    timeout: float | None = None


class Recipe(BaseModel):
    name: str
    description: str | None = None
    steps: List[RecipeStep] = Field(default_factory=list)


class QualityConfig(BaseModel):
    min_width: int = 320
    max_width: int = 3840
    min_height: int = 240
    max_height: int = 2160
    min_file_size: int = 1024
    max_file_size: int = 10 * 1024 * 1024
    required_formats: List[str] = Field(default_factory=lambda: ["png", "jpeg"])
    quality_threshold: int = Field(default=80, ge=0, le=100)
    min_pass_rate: float = Field(default=80.0, ge=0, le=100)
    """Percentage of screenshots that must pass for the audit to pass."""


class RetryConfig(BaseModel):
    delay_seconds: float = Field(default=1.0, ge=0)
    recipe_execution: int = Field(default=3, ge=1)
    quality_audit: int = Field(default=2, ge=1)
    distribution: int = Field(default=3, ge=1)


class ConfigCheck(BaseModel):
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class WorkflowConfig(BaseModel):
    """Top-level workflow configuration."""

    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    screenshots: ScreenshotConfig = Field(default_factory=ScreenshotConfig)
    change_detection: ChangeDetectionConfig = Field(default_factory=ChangeDetectionConfig)
    recipes: List[Recipe] = Field(default_factory=list)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    engine: MachineSettings = Field(
        default_factory=lambda: MachineSettings(max_consecutive_errors=5, validate_targets=True)
    )
    output_dir: Path = Path("output")

    @property
    def final_dir(self) -> Path:
        return self.output_dir / "final"

    @property
    def temp_dir(self) -> Path:
        return self.output_dir / "temp"

    @property
    def diffs_dir(self) -> Path:
        return self.output_dir / "diffs"

    @property
    def quality_reports_dir(self) -> Path:
        return self.output_dir / "quality-reports"

    @property
    def audit_summaries_dir(self) -> Path:
        return self.output_dir / "audit-summaries"

    def output_dirs(self) -> list[Path]:
        return [
            self.final_dir,
            self.temp_dir,
            self.diffs_dir,
            self.quality_reports_dir,
            self.audit_summaries_dir,
        ]

    def check(self) -> ConfigCheck:
        """Report configuration errors and warnings without raising."""

        result = ConfigCheck()

        if not self.screenshots.viewports:
            result.errors.append("At least one viewport must be configured")
        if not self.screenshots.formats:
            result.errors.append("At least one screenshot format must be configured")
        if not 0 <= self.change_detection.threshold <= 1:
            result.errors.append("Change detection threshold must be between 0 and 1")

        if not self.recipes:
            result.warnings.append("No recipes configured - workflow will not capture screenshots")

        for recipe in self.recipes:
            if not recipe.name:
                result.errors.append("Recipe name is required")
            if not recipe.steps:
                result.errors.append(f"Recipe '{recipe.name}' has no steps")
            for step in recipe.steps:
                if step.type != "navigate":
                    continue
                if not step.url:
                    result.errors.append(f"Recipe '{recipe.name}' navigate step missing URL")
                if not step.filename:
                    result.errors.append(f"Recipe '{recipe.name}' navigate step missing filename")

        return result


def workflow_config(context: StateContext) -> WorkflowConfig:
    """Return the typed configuration stored in a state context."""

    return WorkflowConfig.model_validate(context.config)


def config_payload(config: WorkflowConfig | Mapping[str, Any] | None) -> Dict[str, Any]:
    """Normalize configuration into the plain mapping kept on the context."""

    if config is None:
        return WorkflowConfig().model_dump()
    if isinstance(config, WorkflowConfig):
        return config.model_dump()
    return WorkflowConfig.model_validate(config).model_dump()


__all__ = [
    "ChangeDetectionConfig",
    "ConfigCheck",
    "MonitoringConfig",
    "QualityConfig",
    "Recipe",
    "RecipeStep",
    "RetryConfig",
    "ScreenshotConfig",
    "Viewport",
    "WorkflowConfig",
    "config_payload",
    "workflow_config",
]
