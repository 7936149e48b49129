from __future__ import annotations

"""Dependency helpers for FastAPI routes."""

from fastapi import Request


def get_workflow_manager(request: Request):
    """Return the manager owning the current workflow run."""

    return request.app.state.workflow_manager


__all__ = ["get_workflow_manager"]
