from __future__ import annotations

"""Mode fan-out and bounded-retry helpers built on guarded transitions.

Both idioms are plain lists of ``Transition`` values; the engine knows
nothing about modes or retries.

Mode fan-out declares one guarded transition per mode for the same event,
each testing ``data[key] == mode``. The guards are mutually exclusive by
construction; an unknown mode leaves the event unmatched.

Bounded retry keeps a per-run failure counter in ``data[RETRY_COUNTS_KEY]``
keyed by state name, so the count is visible from outside the stage and is
discarded with the run. A stage records a failure before returning its
failure event and resets the counter on success; the ``can_retry`` and
``exhausted`` guards then split the failure event between a retry target and
a give-up target.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping

from engine.event import Event
from engine.transition import Guard, Transition, on

RETRY_COUNTS_KEY = "retry_counts"


def data_equals(key: str, value: Any) -> Guard:
    """Guard that holds when ``data[key] == value``."""

    def guard(event: Event, data: Mapping[str, Any]) -> bool:
        return data.get(key) == value

    guard.__name__ = f"data_equals_{key}"
    return guard


def all_of(*guards: Guard) -> Guard:
    """Guard that holds when every given guard holds."""

    def guard(event: Event, data: Mapping[str, Any]) -> bool:
        return all(check(event, data) for check in guards)

    return guard


def fan_out(
    event_type: str,
    routes: Mapping[Any, str],
    *,
    key: str,
    when: Guard | None = None,
) -> list[Transition]:
    """One guarded transition per ``routes`` entry (mode value -> target).

    ``when`` is AND-ed into every route.
    """

    transitions: list[Transition] = []
    for mode, target in routes.items():
        guard = data_equals(key, mode)
        if when is not None:
            guard = all_of(when, guard)
        transitions.append(on(event_type).go_to_if(target, guard))
    return transitions


@dataclass(frozen=True)
class RetryPolicy:
    """Failure budget for one state, stored in the shared data map.

    With ``max_attempts=3`` the first two failures route to the retry target
    and the third to the give-up target.
    """

    state_name: str
    max_attempts: int

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def _counts(self, data: MutableMapping[str, Any]) -> Dict[str, int]:
        return data.setdefault(RETRY_COUNTS_KEY, {})

    def count(self, data: Mapping[str, Any]) -> int:
        """Failures recorded in the current streak."""

        return int(data.get(RETRY_COUNTS_KEY, {}).get(self.state_name, 0))

    def record_failure(self, data: MutableMapping[str, Any]) -> int:
        """Count one more failure; an exhausted streak restarts at 1."""

        current = self.count(data)
        updated = current + 1 if current < self.max_attempts else 1
        self._counts(data)[self.state_name] = updated
        return updated

    def reset(self, data: MutableMapping[str, Any]) -> None:
        self._counts(data).pop(self.state_name, None)

    def has_budget(self, data: Mapping[str, Any]) -> bool:
        """True when one more recorded failure would still be retried."""

        current = self.count(data)
        if current >= self.max_attempts:
            current = 0
        return current + 1 < self.max_attempts

    def within_budget(self, data: Mapping[str, Any]) -> bool:
        """True while the recorded failures should still be retried."""

        return self.count(data) < self.max_attempts

    def can_retry(self, event: Event, data: Mapping[str, Any]) -> bool:
        return self.within_budget(data)

    def exhausted(self, event: Event, data: Mapping[str, Any]) -> bool:
        return not self.within_budget(data)

    def transitions(
        self,
        event_type: str,
        retry_target: str,
        give_up: Mapping[Any, str] | str,
        *,
        key: str | None = None,
    ) -> list[Transition]:
        """Retry transition followed by the give-up route(s) for ``event_type``.

        ``give_up`` is either a single target or a mode -> target mapping
        routed on ``data[key]``.
        """

        transitions = [on(event_type).go_to_if(retry_target, self.can_retry)]
        if isinstance(give_up, str):
            transitions.append(on(event_type).go_to_if(give_up, self.exhausted))
        else:
            if key is None:
                raise ValueError("key is required when give_up is a mode mapping")
            transitions.extend(fan_out(event_type, give_up, key=key, when=self.exhausted))
        return transitions


__all__ = [
    "RETRY_COUNTS_KEY",
    "RetryPolicy",
    "all_of",
    "data_equals",
    "fan_out",
]
