from __future__ import annotations

"""FastAPI application factory and the workflow manager it exposes."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Mapping

from fastapi import FastAPI

from app.routes import workflow_routes
from engine.context import StateSnapshot
from pipeline.collaborators import Collaborators
from pipeline.config import WorkflowConfig
from pipeline.vocabulary import WorkflowMode
from pipeline.workflow import ScreenshotWorkflow, WorkflowError, WorkflowMetrics, WorkflowStatus

logger = logging.getLogger("workflow.app")


def configure_logging() -> None:
    """Configure basic logging for the service."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class WorkflowManager:
    """Owns the current workflow and the background task running it."""

    def __init__(self, config: WorkflowConfig, collaborators: Collaborators | None) -> None:
        self.config = config
        self.collaborators = collaborators
        self.workflow: ScreenshotWorkflow | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(
        self,
        mode: WorkflowMode,
        initial_data: Mapping[str, Any] | None = None,
    ) -> WorkflowStatus:
        if self.collaborators is None:
            raise WorkflowError("No capture services configured")
        if self.is_active:
            raise WorkflowError("Workflow is already running")

        workflow = ScreenshotWorkflow(self.config, self.collaborators)
        workflow.initialize(mode, initial_data)
        self.workflow = workflow
        self._task = asyncio.create_task(self._run(workflow))
        # Let the machine enter its initial state before reporting status.
        await asyncio.sleep(0)
        return workflow.status()

    async def stop(self) -> WorkflowStatus:
        workflow = self._require_workflow()
        await workflow.stop()
        if self._task is not None:
            await self._task
        return workflow.status()

    def trigger(self) -> bool:
        return self._require_workflow().trigger_manual_run()

    def status(self) -> WorkflowStatus:
        if self.workflow is None:
            return WorkflowStatus(initialized=False, is_running=False)
        return self.workflow.status()

    def history(self) -> List[StateSnapshot]:
        return self._require_workflow().history()

    def metrics(self) -> WorkflowMetrics:
        return ScreenshotWorkflow(self.config, self.collaborators).metrics()

    async def shutdown(self) -> None:
        if self.workflow is not None and self.is_active:
            await self.stop()

    def _require_workflow(self) -> ScreenshotWorkflow:
        if self.workflow is None:
            raise WorkflowError("Workflow not initialized")
        return self.workflow

    async def _run(self, workflow: ScreenshotWorkflow) -> None:
        try:
            await workflow.start()
            logger.info("Workflow %s finished", workflow.mode)
        except Exception as exc:
            logger.exception("Workflow %s failed: %s", workflow.mode, exc)


def create_app(
    config: WorkflowConfig | Mapping[str, Any] | None = None,
    collaborators: Collaborators | None = None,
) -> FastAPI:
    """Construct the FastAPI application.

    Without collaborators the control endpoints answer but cannot start a run.
    """

    configure_logging()
    typed = config if isinstance(config, WorkflowConfig) else WorkflowConfig.model_validate(config or {})
    manager = WorkflowManager(typed, collaborators)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Workflow service starting up.")
        yield
        await manager.shutdown()
        logger.info("Workflow service shutting down.")

    app = FastAPI(title="Screenshot Workflow", version="0.1.0", lifespan=lifespan)
    app.state.workflow_manager = manager

    @app.get("/health", tags=["system"])
    async def health() -> Dict[str, str]:
        """Liveness check."""

        return {"status": "ok"}

    app.include_router(workflow_routes.router)

    return app


app = create_app()


__all__ = [
    "WorkflowManager",
    "app",
    "configure_logging",
    "create_app",
]
