from __future__ import annotations

"""Request and response schemas for the workflow control API."""

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from engine.context import StateSnapshot
from pipeline.vocabulary import WorkflowMode
from pipeline.workflow import WorkflowStatus


class StartRequest(BaseModel):
    """Payload for POST /workflow/start."""

    mode: WorkflowMode = WorkflowMode.MONITOR
    initial_data: Dict[str, Any] = Field(default_factory=dict)


class TriggerResponse(BaseModel):
    triggered: bool
    current_state: str | None = None


class HistoryEntry(BaseModel):
    state: str
    timestamp: datetime
    message: str | None = None
    data: Dict[str, Any] = Field(default_factory=dict)


class HistoryResponse(BaseModel):
    run_id: str | None = None
    entries: List[HistoryEntry]


class ModeDescription(BaseModel):
    mode: WorkflowMode
    description: str
    initial_state: str
    completion_state: str
    stages: List[str]


def serialize_history(run_id: str | None, snapshots: List[StateSnapshot]) -> HistoryResponse:
    """Convert engine snapshots to the API schema."""

    return HistoryResponse(
        run_id=run_id,
        entries=[
            HistoryEntry(
                state=snapshot.state,
                timestamp=snapshot.timestamp,
                message=snapshot.message,
                data={key: str(value) for key, value in snapshot.data.items()},
            )
            for snapshot in snapshots
        ],
    )


__all__ = [
    "HistoryEntry",
    "HistoryResponse",
    "ModeDescription",
    "StartRequest",
    "TriggerResponse",
    "WorkflowStatus",
    "serialize_history",
]
