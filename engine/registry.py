from __future__ import annotations

"""State registry mapping state names to state instances."""

from typing import Dict, Iterator, Mapping

from engine.errors import RegistryValidationError
from engine.state import State


class StateRegistry:
    """Container responsible for storing the states of one machine."""

    def __init__(self, states: Mapping[str, State] | None = None) -> None:
        self._states: Dict[str, State] = {}
        for name, state in (states or {}).items():
            self.register(state, name=name)

    def register(self, state: State, *, name: str | None = None) -> None:
        """Register a state under its own name (or an explicit alias)."""

        key = name or state.name
        if key in self._states:
            raise ValueError(f"State '{key}' is already registered.")
        self._states[key] = state

    def get(self, name: str) -> State | None:
        """Return the state registered under ``name`` or None."""

        return self._states.get(name)

    def has(self, name: str) -> bool:
        """Check whether a state name is registered."""

        return name in self._states

    def unregister(self, name: str) -> None:
        """Remove a registered state."""

        self._states.pop(name, None)

    def names(self) -> list[str]:
        return list(self._states)

    def problems(self, initial_state: str | None = None) -> list[str]:
        """List unresolvable references in the registry.

        Every target of every declared transition must be registered, as must
        the initial state when one is given.
        """

        problems: list[str] = []
        if initial_state is not None and initial_state not in self._states:
            problems.append(f"initial state '{initial_state}' is not registered")
        for name, state in self._states.items():
            for transition in state.get_transitions():
                if transition.target_state not in self._states:
                    problems.append(
                        f"'{name}' on '{transition.event_type}' targets unknown state "
                        f"'{transition.target_state}'"
                    )
        return problems

    def validate(self, initial_state: str | None = None) -> None:
        """Raise RegistryValidationError when ``problems`` reports anything."""

        problems = self.problems(initial_state)
        if problems:
            raise RegistryValidationError(problems)

    def __contains__(self, name: object) -> bool:
        return name in self._states

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)


__all__ = ["StateRegistry"]
