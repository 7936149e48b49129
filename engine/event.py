from __future__ import annotations

"""Immutable event values exchanged between states and the engine."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    """A typed, timestamped occurrence emitted by a state's execute step.

    The payload is opaque to the engine; its shape is agreed per event type
    between the emitting state and whoever reads it.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1)
    payload: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


def create_event(event_type: str, payload: Optional[Dict[str, Any]] = None) -> Event:
    """Create a new event stamped with the current instant."""

    return Event(type=event_type, payload=payload)


__all__ = ["Event", "create_event"]
