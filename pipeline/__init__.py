"""Screenshot monitoring pipeline built on the state machine engine."""

from pipeline.builder import build_workflow, list_workflows, validate_workflow_flow, workflow_summary
from pipeline.collaborators import Collaborators
from pipeline.config import WorkflowConfig
from pipeline.vocabulary import DataKey, EventType, Stage, WorkflowMode
from pipeline.workflow import ScreenshotWorkflow, WorkflowError, WorkflowStatus

__all__ = [
    "Collaborators",
    "DataKey",
    "EventType",
    "ScreenshotWorkflow",
    "Stage",
    "WorkflowConfig",
    "WorkflowError",
    "WorkflowMode",
    "WorkflowStatus",
    "build_workflow",
    "list_workflows",
    "validate_workflow_flow",
    "workflow_summary",
]
