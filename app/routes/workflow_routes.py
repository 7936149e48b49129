from __future__ import annotations

"""Workflow control routes."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.deps import get_workflow_manager
from app.schemas import HistoryResponse, ModeDescription, StartRequest, TriggerResponse, serialize_history
from pipeline.builder import list_workflows
from pipeline.workflow import WorkflowConfigError, WorkflowError, WorkflowMetrics, WorkflowStatus

logger = logging.getLogger("workflow.routes.workflow")

router = APIRouter(prefix="/workflow", tags=["workflow"])


def _require_initialized(manager) -> None:
    if manager.workflow is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow not initialized.")


@router.get("/modes", response_model=List[ModeDescription])
async def list_modes() -> List[ModeDescription]:
    """Describe the supported workflow modes."""

    return [ModeDescription.model_validate(summary) for summary in list_workflows()]


@router.post(
    "/start",
    response_model=WorkflowStatus,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_workflow(
    payload: StartRequest,
    manager=Depends(get_workflow_manager),
) -> WorkflowStatus:
    """Build a workflow for the requested mode and run it in the background."""

    if manager.collaborators is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No capture services configured.",
        )
    try:
        result = await manager.start(payload.mode, payload.initial_data)
    except WorkflowConfigError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except WorkflowError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    logger.info("Workflow started in %s mode", payload.mode)
    return result


@router.post("/stop", response_model=WorkflowStatus)
async def stop_workflow(manager=Depends(get_workflow_manager)) -> WorkflowStatus:
    """Stop the running workflow; stopping a finished one is a no-op."""

    _require_initialized(manager)
    return await manager.stop()


@router.post("/trigger", response_model=TriggerResponse)
async def trigger_workflow(manager=Depends(get_workflow_manager)) -> TriggerResponse:
    """Request an immediate cycle from the monitoring stage."""

    _require_initialized(manager)
    try:
        triggered = manager.trigger()
    except WorkflowError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return TriggerResponse(triggered=triggered, current_state=manager.status().current_state)


@router.get("/status", response_model=WorkflowStatus)
async def get_status(manager=Depends(get_workflow_manager)) -> WorkflowStatus:
    return manager.status()


@router.get("/history", response_model=HistoryResponse)
async def get_history(manager=Depends(get_workflow_manager)) -> HistoryResponse:
    """Return the state snapshots recorded by the current run."""

    _require_initialized(manager)
    return serialize_history(manager.status().run_id, manager.history())


@router.get("/metrics", response_model=WorkflowMetrics)
async def get_metrics(manager=Depends(get_workflow_manager)) -> WorkflowMetrics:
    """File counts of the output directories and the latest reports."""

    return manager.metrics()
