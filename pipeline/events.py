from __future__ import annotations

"""Constructors for the pipeline's event vocabulary."""

from typing import Any, Sequence

from engine.event import Event, create_event
from pipeline.vocabulary import EventType


def schedule_reached() -> Event:
    return create_event(EventType.SCHEDULE_REACHED)


def manual_trigger() -> Event:
    return create_event(EventType.MANUAL_TRIGGER)


def visual_change_detected(changes: Sequence[Any]) -> Event:
    return create_event(EventType.VISUAL_CHANGE_DETECTED, {"changes": list(changes)})


def no_change_detected() -> Event:
    return create_event(EventType.NO_CHANGE_DETECTED)


def screenshots_captured(screenshots: Sequence[Any]) -> Event:
    return create_event(EventType.SCREENSHOTS_CAPTURED, {"screenshots": list(screenshots)})


def execution_failed(error: BaseException | str) -> Event:
    return create_event(EventType.EXECUTION_FAILED, {"error": str(error)})


def quality_check_passed() -> Event:
    return create_event(EventType.QUALITY_CHECK_PASSED)


def quality_check_failed(issues: Sequence[str]) -> Event:
    return create_event(EventType.QUALITY_CHECK_FAILED, {"issues": list(issues)})


def sync_successful() -> Event:
    return create_event(EventType.SYNC_SUCCESSFUL)


def sync_failed(error: BaseException | str) -> Event:
    return create_event(EventType.SYNC_FAILED, {"error": str(error)})


def cycle_complete() -> Event:
    return create_event(EventType.CYCLE_COMPLETE)


__all__ = [
    "cycle_complete",
    "execution_failed",
    "manual_trigger",
    "no_change_detected",
    "quality_check_failed",
    "quality_check_passed",
    "schedule_reached",
    "screenshots_captured",
    "sync_failed",
    "sync_successful",
    "visual_change_detected",
]
