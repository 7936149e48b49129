from __future__ import annotations

"""RECIPE_EXECUTION: run the configured recipes and collect their screenshots."""

from typing import List

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition, on
from pipeline import events
from pipeline.collaborators import CaptureService, RecipeResult, RecipeRunner, Screenshot
from pipeline.stages.base import GIVE_UP_ROUTES, RetryingStage
from pipeline.vocabulary import DataKey, EventType, Stage


class RecipeExecutionState(RetryingStage):
    """Produces ``captured_screenshots`` and ``recipe_results``.

    A run where only some recipes succeed is retried while budget remains;
    on the last attempt the partial results are accepted.
    """

    def __init__(
        self,
        recipes: RecipeRunner,
        capture: CaptureService,
        *,
        max_attempts: int = 3,
    ) -> None:
        super().__init__(Stage.RECIPE_EXECUTION, max_attempts=max_attempts)
        self.recipes = recipes
        self.capture = capture

    async def enter(self, context: StateContext) -> None:
        await super().enter(context)
        await self.capture.initialize()

    async def execute(self, context: StateContext) -> Event | None:
        config = self.config(context)
        if not config.recipes:
            return await self.fail(context, events.execution_failed, "No recipes configured")

        problems: List[str] = []
        for recipe in config.recipes:
            problems.extend(
                f"Recipe '{recipe.name}': {error}" for error in self.recipes.validate_recipe(recipe)
            )
        if problems:
            return await self.fail(
                context, events.execution_failed, "Recipe validation failed: " + "; ".join(problems)
            )

        try:
            config.temp_dir.mkdir(parents=True, exist_ok=True)
            results = await self.recipes.execute_recipes(
                config.recipes, config.temp_dir, config.screenshots, True
            )
        except Exception as exc:
            return await self.fail(context, events.execution_failed, f"Recipe execution error: {exc}")

        succeeded = [result for result in results if result.success]
        failed = [result for result in results if not result.success]

        if not succeeded:
            return await self.fail(
                context, events.execution_failed, "All recipes failed: " + _errors(failed)
            )
        if failed and self.retry.has_budget(context.data):
            return await self.fail(
                context,
                events.execution_failed,
                f"{len(failed)} of {len(results)} recipes failed: " + _errors(failed),
            )
        if failed:
            context.logger.warning(
                "Accepting partial results: %d of %d recipes failed", len(failed), len(results)
            )

        screenshots: List[Screenshot] = [shot for result in succeeded for shot in result.screenshots]
        context.data[DataKey.CAPTURED_SCREENSHOTS] = screenshots
        context.data[DataKey.RECIPE_RESULTS] = results
        self.succeed(context)
        context.logger.info(
            "Recipes completed: %d successful, %d screenshots", len(succeeded), len(screenshots)
        )
        return events.screenshots_captured(screenshots)

    async def exit(self, context: StateContext) -> None:
        await self.capture.cleanup()
        await super().exit(context)

    def get_transitions(self) -> list[Transition]:
        return [
            on(EventType.SCREENSHOTS_CAPTURED).go_to(Stage.QUALITY_AUDIT),
            *self.retry.transitions(
                EventType.EXECUTION_FAILED,
                Stage.RECIPE_EXECUTION,
                GIVE_UP_ROUTES,
                key=DataKey.WORKFLOW_MODE,
            ),
        ]


def _errors(results: List[RecipeResult]) -> str:
    return ", ".join(f"{result.recipe_name}: {result.error or 'unknown error'}" for result in results)


__all__ = ["RecipeExecutionState"]
