from __future__ import annotations

"""CHANGE_DETECTION: capture the targets and compare them with the baselines."""

import re
from pathlib import Path
from typing import List

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition, on
from pipeline import events
from pipeline.collaborators import (
    CaptureService,
    CaptureTarget,
    ChangeDetector,
    ChangeSummary,
    ComparisonResult,
    Screenshot,
)
from pipeline.config import WorkflowConfig
from pipeline.stages.base import PipelineStage, to_completion
from pipeline.vocabulary import CYCLE_KEYS, DataKey, EventType, Stage

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg"}
TIMESTAMP_PATTERN = re.compile(r"-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z")


def baseline_filename(filename: str, image_format: str | None = None) -> str:
    """Strip the capture timestamp from ``filename`` (and fix its extension)."""

    name = TIMESTAMP_PATTERN.sub("", filename)
    if image_format:
        name = str(Path(name).with_suffix(f".{image_format}"))
    return name


def has_baselines(directory: Path) -> bool:
    if not directory.is_dir():
        return False
    return any(path.suffix.lower() in IMAGE_SUFFIXES for path in directory.iterdir())


class ChangeDetectionState(PipelineStage):
    """Produces ``is_initial_run``, ``current_screenshots`` and ``change_summary``.

    With no baselines on disk the capture goes straight into the final
    directory and the run counts as a change so the rest of the pipeline
    audits the new baselines. Per-cycle keys left by an earlier cycle are
    dropped before capturing.
    """

    def __init__(self, capture: CaptureService, detector: ChangeDetector) -> None:
        super().__init__(Stage.CHANGE_DETECTION)
        self.capture = capture
        self.detector = detector

    async def enter(self, context: StateContext) -> None:
        await super().enter(context)
        await self.capture.initialize()

    async def execute(self, context: StateContext) -> Event | None:
        config = self.config(context)
        for key in CYCLE_KEYS:
            if key != DataKey.TRIGGER_TYPE:
                context.data.pop(key, None)

        try:
            config.final_dir.mkdir(parents=True, exist_ok=True)
            config.temp_dir.mkdir(parents=True, exist_ok=True)

            if not has_baselines(config.final_dir):
                context.logger.info("No baseline screenshots found - creating initial baselines")
                context.data[DataKey.IS_INITIAL_RUN] = True
                screenshots = await self._capture(config, config.final_dir, use_timestamp=False)
                context.data[DataKey.CURRENT_SCREENSHOTS] = screenshots
                return events.visual_change_detected([])

            context.data[DataKey.IS_INITIAL_RUN] = False
            screenshots = await self._capture(config, config.temp_dir, use_timestamp=True)
            if not screenshots:
                context.logger.info("No screenshots captured - target may be unavailable")
                return events.no_change_detected()

            summary = await self._compare(config, screenshots)
            context.data[DataKey.CHANGE_SUMMARY] = summary
            context.data[DataKey.CURRENT_SCREENSHOTS] = screenshots

            if summary.changed_images:
                context.logger.info(
                    "Visual changes detected in %d screenshots", summary.changed_images
                )
                return events.visual_change_detected(
                    [result for result in summary.results if result.has_changed]
                )

            context.logger.info("No visual changes detected")
            await self.detector.cleanup_temp_files(config.temp_dir)
            return events.no_change_detected()
        except Exception as exc:
            context.logger.error("Change detection failed: %s", exc)
            return events.no_change_detected()

    async def exit(self, context: StateContext) -> None:
        await self.capture.cleanup()
        await super().exit(context)

    def get_transitions(self) -> list[Transition]:
        return [
            on(EventType.VISUAL_CHANGE_DETECTED).go_to(Stage.RECIPE_EXECUTION),
            *to_completion(EventType.NO_CHANGE_DETECTED),
        ]

    async def _capture(
        self,
        config: WorkflowConfig,
        output_dir: Path,
        *,
        use_timestamp: bool,
    ) -> List[Screenshot]:
        screenshots: List[Screenshot] = []
        for recipe in config.recipes:
            for step in recipe.steps:
                if not step.url or not step.filename:
                    continue
                if not await self.capture.is_url_accessible(step.url):
                    continue
                screenshots.extend(
                    await self.capture.capture_many(
                        [CaptureTarget(url=step.url, filename=step.filename)],
                        output_dir,
                        config.screenshots,
                        use_timestamp,
                    )
                )
        return screenshots

    async def _compare(self, config: WorkflowConfig, screenshots: List[Screenshot]) -> ChangeSummary:
        results: List[ComparisonResult] = []
        for screenshot in screenshots:
            name = baseline_filename(screenshot.filename, screenshot.format)
            baseline = config.final_dir / name
            if baseline.exists():
                results.append(
                    await self.detector.compare_images(
                        baseline, screenshot.path, config.change_detection
                    )
                )
            else:
                results.append(
                    ComparisonResult(
                        filename=name,
                        baseline_path=baseline,
                        current_path=screenshot.path,
                        percentage_difference=100.0,
                        has_changed=True,
                    )
                )
        return ChangeSummary.from_results(results)


__all__ = ["ChangeDetectionState", "baseline_filename", "has_baselines"]
