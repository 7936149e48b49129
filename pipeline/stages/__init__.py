"""Pipeline stages registered with the state machine."""

from pipeline.stages.base import COMPLETION_ROUTES, GIVE_UP_ROUTES, PipelineStage, RetryingStage
from pipeline.stages.change_detection import ChangeDetectionState
from pipeline.stages.completion import AuditCompleteState, ScheduleCompleteState, TriggerCompleteState
from pipeline.stages.distribution import DistributionState
from pipeline.stages.monitoring import MonitoringState
from pipeline.stages.quality_audit import QualityAuditState
from pipeline.stages.recipe_execution import RecipeExecutionState

__all__ = [
    "AuditCompleteState",
    "COMPLETION_ROUTES",
    "ChangeDetectionState",
    "DistributionState",
    "GIVE_UP_ROUTES",
    "MonitoringState",
    "PipelineStage",
    "QualityAuditState",
    "RecipeExecutionState",
    "RetryingStage",
    "ScheduleCompleteState",
    "TriggerCompleteState",
]
