from __future__ import annotations

"""Exception hierarchy for the state machine engine."""

from typing import Iterable


class StateMachineError(Exception):
    """Base class for state machine failures."""


class AlreadyRunningError(StateMachineError):
    """Raised when starting a machine that is already running."""

    def __init__(self) -> None:
        super().__init__("State machine is already running")


class UnknownStateError(StateMachineError):
    """Raised when a state name cannot be resolved in the registry."""

    def __init__(self, state_name: str, message: str | None = None) -> None:
        super().__init__(message or f"State '{state_name}' not found")
        self.state_name = state_name


class RegistryValidationError(StateMachineError):
    """Raised when a registry references states it does not contain."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems = list(problems)
        super().__init__("Invalid state registry: " + "; ".join(self.problems))


class ErrorLimitExceeded(StateMachineError):
    """Stored on the machine when a state keeps failing past the error ceiling."""

    def __init__(self, state_name: str, attempts: int, original: BaseException) -> None:
        super().__init__(
            f"State '{state_name}' failed {attempts} consecutive times: {original}"
        )
        self.state_name = state_name
        self.attempts = attempts
        self.original = original


__all__ = [
    "AlreadyRunningError",
    "ErrorLimitExceeded",
    "RegistryValidationError",
    "StateMachineError",
    "UnknownStateError",
]
