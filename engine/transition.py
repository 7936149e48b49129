from __future__ import annotations

"""Transition records, the fluent builder, and the matching algorithm."""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from engine.event import Event

Guard = Callable[[Event, Mapping[str, Any]], bool]
"""Pure predicate over the incoming event and the shared data map."""


@dataclass(frozen=True, slots=True)
class Transition:
    """Move to ``target_state`` on ``event_type`` when ``guard`` allows it."""

    event_type: str
    target_state: str
    guard: Optional[Guard] = None

    def matches(self, event: Event, data: Mapping[str, Any]) -> bool:
        """Return True when this transition applies to the event."""

        if self.event_type != event.type:
            return False
        if self.guard is None:
            return True
        return bool(self.guard(event, data))


@dataclass(frozen=True, slots=True)
class TransitionBuilder:
    """Second step of ``on(event).go_to(target)``."""

    event_type: str

    def go_to(self, target_state: str) -> Transition:
        """Unconditional transition."""

        return Transition(event_type=self.event_type, target_state=target_state)

    def go_to_if(self, target_state: str, guard: Guard) -> Transition:
        """Conditional transition, taken only when ``guard`` holds."""

        return Transition(
            event_type=self.event_type,
            target_state=target_state,
            guard=guard,
        )


def on(event_type: str) -> TransitionBuilder:
    """Start building a transition for ``event_type``."""

    return TransitionBuilder(event_type=event_type)


def find_transition(
    transitions: Iterable[Transition],
    event: Event,
    data: Mapping[str, Any],
) -> Transition | None:
    """Return the first declared transition matching ``event``.

    Declaration order decides between transitions whose guards overlap.
    """

    for transition in transitions:
        if transition.matches(event, data):
            return transition
    return None


__all__ = ["Guard", "Transition", "TransitionBuilder", "find_transition", "on"]
