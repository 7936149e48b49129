from __future__ import annotations

"""High level entry point that owns one screenshot workflow run."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, Field

from engine.context import StateSnapshot
from engine.machine import StateMachine
from pipeline.builder import WorkflowDefinition, build_workflow
from pipeline.collaborators import Collaborators, SchedulerStatus
from pipeline.config import WorkflowConfig
from pipeline.stages.monitoring import MonitoringState
from pipeline.vocabulary import DataKey, Stage, WorkflowMode

logger = logging.getLogger("workflow.pipeline")


class WorkflowError(Exception):
    """Raised when the workflow is used out of order or is misconfigured."""


class WorkflowConfigError(WorkflowError):
    """Raised by ``initialize`` for an invalid configuration or mode."""


class WorkflowStatus(BaseModel):
    initialized: bool
    is_running: bool
    mode: WorkflowMode | None = None
    current_state: str | None = None
    run_id: str | None = None
    steps: int = 0
    scheduler: SchedulerStatus | None = None
    failure: str | None = None


class DirectoryMetrics(BaseModel):
    file_count: int = 0
    total_size_mb: float = 0.0


class RecentActivity(BaseModel):
    last_audit_summary: str | None = None
    last_quality_report: str | None = None


class WorkflowMetrics(BaseModel):
    directories: Dict[str, DirectoryMetrics] = Field(default_factory=dict)
    recent_activity: RecentActivity = Field(default_factory=RecentActivity)


def directory_metrics(directory: Path) -> DirectoryMetrics:
    if not directory.is_dir():
        return DirectoryMetrics()
    files = [path for path in directory.iterdir() if path.is_file()]
    size = sum(path.stat().st_size for path in files)
    return DirectoryMetrics(file_count=len(files), total_size_mb=round(size / (1024 * 1024), 2))


def latest_file(directory: Path, suffix: str = ".json") -> str | None:
    if not directory.is_dir():
        return None
    candidates = [path for path in directory.iterdir() if path.suffix == suffix]
    if not candidates:
        return None
    return max(candidates, key=lambda path: path.stat().st_mtime).name


class ScreenshotWorkflow:
    """Validates configuration, builds the state machine and drives it.

    ``start`` blocks until the machine stops; callers that need control while
    it runs schedule it as a task and use ``stop``/``trigger_manual_run``.
    """

    def __init__(
        self,
        config: WorkflowConfig | Mapping[str, Any],
        collaborators: Collaborators,
        *,
        logger: Any = None,
    ) -> None:
        self.config = config if isinstance(config, WorkflowConfig) else WorkflowConfig.model_validate(config)
        self.collaborators = collaborators
        self.logger = logger
        self.definition: WorkflowDefinition | None = None
        self.machine: StateMachine | None = None

    @property
    def mode(self) -> WorkflowMode | None:
        return self.definition.mode if self.definition else None

    @property
    def is_running(self) -> bool:
        return self.machine is not None and self.machine.is_running

    def initialize(
        self,
        mode: WorkflowMode | str = WorkflowMode.MONITOR,
        initial_data: Mapping[str, Any] | None = None,
    ) -> None:
        """Validate the configuration and build a fresh machine for ``mode``."""

        if self.is_running:
            raise WorkflowError("Workflow is already running")

        check = self.config.check()
        for warning in check.warnings:
            logger.warning(warning)
        if not check.is_valid:
            raise WorkflowConfigError(f"Workflow configuration invalid: {', '.join(check.errors)}")

        for directory in self.config.output_dirs():
            directory.mkdir(parents=True, exist_ok=True)

        try:
            self.definition = build_workflow(
                mode, self.config, self.collaborators, self.logger, initial_data
            )
        except ValueError as exc:
            raise WorkflowConfigError(str(exc)) from exc
        self.machine = self.definition.create_machine()

    async def start(self) -> None:
        machine = self._require_machine()
        logger.info(
            "Starting %s workflow: %g min interval, %d recipes",
            self.mode,
            self.config.monitoring.interval,
            len(self.config.recipes),
        )
        try:
            await machine.start()
        except Exception as exc:
            logger.error("Workflow startup failed: %s", exc)
            raise

    async def stop(self) -> None:
        if self.machine is None:
            return
        logger.info("Stopping workflow")
        await self.machine.stop()

    def trigger_manual_run(self) -> bool:
        """Ask MONITORING to start a cycle now.

        Returns False (and does nothing) when the machine is in another stage.
        """

        machine = self._require_machine()
        if not machine.is_running:
            raise WorkflowError("Workflow is not running")

        state = machine.current_state
        if isinstance(state, MonitoringState):
            logger.info("Triggering manual workflow run")
            if state.scheduler_status().is_running:
                state.trigger_manual_run()
            else:
                # MONITORING is current but not entered yet.
                machine.context.data[DataKey.MANUAL_TRIGGER] = True
            return True

        logger.info(
            "Cannot trigger manual run - current state: %s", machine.current_state_name or "unknown"
        )
        return False

    def status(self) -> WorkflowStatus:
        machine = self.machine
        if machine is None:
            return WorkflowStatus(initialized=False, is_running=False)

        scheduler = None
        monitoring = machine.registry.get(Stage.MONITORING)
        if isinstance(monitoring, MonitoringState):
            scheduler = monitoring.scheduler_status()

        return WorkflowStatus(
            initialized=True,
            is_running=machine.is_running,
            mode=self.mode,
            current_state=machine.current_state_name,
            run_id=str(machine.context.run_id),
            steps=len(machine.context.history),
            scheduler=scheduler,
            failure=str(machine.failure) if machine.failure else None,
        )

    def history(self) -> List[StateSnapshot]:
        if self.machine is None:
            return []
        return list(self.machine.context.history)

    def metrics(self) -> WorkflowMetrics:
        config = self.config
        return WorkflowMetrics(
            directories={
                "final": directory_metrics(config.final_dir),
                "temp": directory_metrics(config.temp_dir),
                "diffs": directory_metrics(config.diffs_dir),
            },
            recent_activity=RecentActivity(
                last_audit_summary=latest_file(config.audit_summaries_dir),
                last_quality_report=latest_file(config.quality_reports_dir),
            ),
        )

    def _require_machine(self) -> StateMachine:
        if self.machine is None:
            raise WorkflowError("Workflow not initialized. Call initialize() first.")
        return self.machine


__all__ = [
    "DirectoryMetrics",
    "ScreenshotWorkflow",
    "WorkflowConfigError",
    "WorkflowError",
    "WorkflowMetrics",
    "WorkflowStatus",
]
