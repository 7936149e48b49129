from __future__ import annotations

"""DISTRIBUTION: promote changed screenshots to the baseline directory."""

import shutil

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition
from pipeline import events
from pipeline.collaborators import ChangeDetector
from pipeline.stages.base import GIVE_UP_ROUTES, RetryingStage, to_completion
from pipeline.stages.change_detection import baseline_filename
from pipeline.vocabulary import DataKey, EventType, Stage


class DistributionState(RetryingStage):
    """Consumes ``change_summary`` and copies each changed capture over its baseline."""

    def __init__(self, detector: ChangeDetector, *, max_attempts: int = 3) -> None:
        super().__init__(Stage.DISTRIBUTION, max_attempts=max_attempts)
        self.detector = detector

    async def execute(self, context: StateContext) -> Event | None:
        config = self.config(context)

        if context.data.get(DataKey.IS_INITIAL_RUN):
            context.logger.info("Initial run - baselines already in place")
            self.succeed(context)
            return events.sync_successful()

        summary = context.data.get(DataKey.CHANGE_SUMMARY)
        if summary is None:
            return await self.fail(context, events.sync_failed, "No change summary available")

        try:
            config.final_dir.mkdir(parents=True, exist_ok=True)
            promoted = 0
            for result in summary.results:
                if not result.has_changed:
                    continue
                target = config.final_dir / baseline_filename(result.current_path.name)
                shutil.copy2(result.current_path, target)
                promoted += 1
                context.logger.debug("Promoted %s to %s", result.current_path, target)
            await self.detector.cleanup_temp_files(config.temp_dir)
        except Exception as exc:
            return await self.fail(context, events.sync_failed, f"Distribution error: {exc}")

        context.logger.info("Distributed %d changed screenshots", promoted)
        self.succeed(context)
        return events.sync_successful()

    def get_transitions(self) -> list[Transition]:
        return [
            *to_completion(EventType.SYNC_SUCCESSFUL),
            *self.retry.transitions(
                EventType.SYNC_FAILED,
                Stage.DISTRIBUTION,
                GIVE_UP_ROUTES,
                key=DataKey.WORKFLOW_MODE,
            ),
        ]


__all__ = ["DistributionState"]
