from __future__ import annotations

"""Shared context handed to every state for the lifetime of one machine run."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LOGGER_NAME = "workflow.context"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateSnapshot(BaseModel):
    """Record of a state change observed by the engine."""

    state: str
    timestamp: datetime = Field(default_factory=_utcnow)
    message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class StateContext(BaseModel):
    """Mutable bag of configuration, cross-stage data and a logger.

    ``data`` has no schema: any state may read or write any key, so a producer
    and a consumer of a key must agree on its name out of band.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: UUID = Field(default_factory=uuid4)
    config: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)
    logger: Any = Field(default_factory=lambda: logging.getLogger(DEFAULT_LOGGER_NAME))
    history: list[StateSnapshot] = Field(default_factory=list)

    def record(
        self,
        state: str,
        message: str | None = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append a snapshot to the run history."""

        self.history.append(StateSnapshot(state=state, message=message, data=data or {}))


__all__ = ["StateContext", "StateSnapshot"]
