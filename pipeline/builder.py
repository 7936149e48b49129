from __future__ import annotations

"""Assemble a validated state machine definition for a workflow mode."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from engine.context import StateContext
from engine.machine import MachineSettings, StateMachine
from engine.registry import StateRegistry
from pipeline.collaborators import Collaborators
from pipeline.config import WorkflowConfig, config_payload
from pipeline.scheduler import IntervalScheduler
from pipeline.stages import (
    AuditCompleteState,
    ChangeDetectionState,
    DistributionState,
    MonitoringState,
    QualityAuditState,
    RecipeExecutionState,
    ScheduleCompleteState,
    TriggerCompleteState,
)
from pipeline.vocabulary import DataKey, Stage, WorkflowMode


@dataclass(frozen=True)
class ModeProfile:
    initial_state: Stage
    completion_state: Stage
    description: str


MODE_PROFILES: Mapping[WorkflowMode, ModeProfile] = {
    WorkflowMode.MONITOR: ModeProfile(
        Stage.MONITORING,
        Stage.AUDIT_COMPLETE,
        "Continuous monitoring with a scheduler; loops until stopped",
    ),
    WorkflowMode.TRIGGER: ModeProfile(
        Stage.CHANGE_DETECTION,
        Stage.TRIGGER_COMPLETE,
        "Single run starting at change detection, then exit",
    ),
    WorkflowMode.SCHEDULE: ModeProfile(
        Stage.MONITORING,
        Stage.SCHEDULE_COMPLETE,
        "Wait for the next scheduled run, execute once, then exit",
    ),
}


class StateFactory:
    """Creates the stage instances for a mode from the injected collaborators.

    Every mode gets all stages so that every fan-out target resolves; the mode
    only decides where the machine starts and which completion stage is
    reachable.
    """

    def __init__(self, collaborators: Collaborators, config: WorkflowConfig) -> None:
        self.collaborators = collaborators
        self.config = config

    def create_states(self, mode: WorkflowMode) -> StateRegistry:
        if mode not in MODE_PROFILES:
            raise ValueError(f"Unknown workflow mode: {mode}")
        services = self.collaborators
        retry = self.config.retry
        scheduler = services.scheduler_factory() if services.scheduler_factory else IntervalScheduler()
        registry = StateRegistry()
        for state in (
            MonitoringState(scheduler),
            ChangeDetectionState(services.capture, services.detector),
            RecipeExecutionState(
                services.recipes, services.capture, max_attempts=retry.recipe_execution
            ),
            QualityAuditState(services.validator, max_attempts=retry.quality_audit),
            DistributionState(services.detector, max_attempts=retry.distribution),
            AuditCompleteState(),
            TriggerCompleteState(services.detector),
            ScheduleCompleteState(services.detector),
        ):
            registry.register(state)
        return registry


@dataclass
class WorkflowDefinition:
    """Everything needed to construct a StateMachine for one run."""

    mode: WorkflowMode
    initial_state: Stage
    registry: StateRegistry
    context: StateContext
    settings: MachineSettings

    def create_machine(self) -> StateMachine:
        return StateMachine(
            self.registry, self.initial_state, self.context, settings=self.settings
        )


def build_workflow(
    mode: WorkflowMode | str,
    config: WorkflowConfig | Mapping[str, Any] | None,
    collaborators: Collaborators,
    logger: Any = None,
    initial_data: Mapping[str, Any] | None = None,
) -> WorkflowDefinition:
    """Build and validate the definition for ``mode``.

    Raises ValueError for an unknown mode and RegistryValidationError when a
    transition target is not registered.
    """

    mode = WorkflowMode.parse(mode) if not isinstance(mode, WorkflowMode) else mode
    typed = config if isinstance(config, WorkflowConfig) else WorkflowConfig.model_validate(config or {})
    profile = MODE_PROFILES[mode]

    registry = StateFactory(collaborators, typed).create_states(mode)
    registry.validate(profile.initial_state)

    data: Dict[str, Any] = dict(initial_data or {})
    data[DataKey.CYCLE_START_TIME] = datetime.now(timezone.utc)
    data[DataKey.WORKFLOW_MODE] = mode

    context = StateContext(
        config=config_payload(typed),
        data=data,
        logger=logger or logging.getLogger(f"workflow.{mode.value}"),
    )
    logging.getLogger("workflow.builder").info(
        "Built %s workflow starting at %s", mode.value, profile.initial_state
    )
    return WorkflowDefinition(
        mode=mode,
        initial_state=profile.initial_state,
        registry=registry,
        context=context,
        settings=typed.engine,
    )


def validate_workflow_flow(
    mode: WorkflowMode | str,
    collaborators: Collaborators,
    config: WorkflowConfig | None = None,
) -> List[str]:
    """Return the registry problems for ``mode`` without raising."""

    mode = WorkflowMode.parse(mode) if not isinstance(mode, WorkflowMode) else mode
    registry = StateFactory(collaborators, config or WorkflowConfig()).create_states(mode)
    return registry.problems(MODE_PROFILES[mode].initial_state)


def workflow_summary(mode: WorkflowMode | str) -> Dict[str, Any]:
    mode = WorkflowMode.parse(mode) if not isinstance(mode, WorkflowMode) else mode
    profile = MODE_PROFILES[mode]
    return {
        "mode": mode.value,
        "description": profile.description,
        "initial_state": profile.initial_state.value,
        "completion_state": profile.completion_state.value,
        "stages": [stage.value for stage in Stage],
    }


def list_workflows() -> List[Dict[str, Any]]:
    return [workflow_summary(mode) for mode in MODE_PROFILES]


__all__ = [
    "MODE_PROFILES",
    "ModeProfile",
    "StateFactory",
    "WorkflowDefinition",
    "build_workflow",
    "list_workflows",
    "validate_workflow_flow",
    "workflow_summary",
]
