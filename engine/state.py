from __future__ import annotations

"""State contract implemented by every pipeline stage."""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from engine.context import StateContext
from engine.event import Event
from engine.transition import Transition


@runtime_checkable
class State(Protocol):
    """Capability set the engine relies on."""

    name: str

    async def enter(self, context: StateContext) -> None: ...

    async def execute(self, context: StateContext) -> Event | None: ...

    async def exit(self, context: StateContext) -> None: ...

    def get_transitions(self) -> list[Transition]: ...


class BaseState(ABC):
    """Convenience base with logging enter/exit hooks.

    ``execute`` returns an event to attempt a transition or ``None`` when there
    is no outcome yet. A state without transitions is terminal.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    async def enter(self, context: StateContext) -> None:
        context.logger.info("Entering state: %s", self.name)

    @abstractmethod
    async def execute(self, context: StateContext) -> Event | None:
        """Run one step of the state."""

    async def exit(self, context: StateContext) -> None:
        context.logger.info("Exiting state: %s", self.name)

    @abstractmethod
    def get_transitions(self) -> list[Transition]:
        """Return the ordered transitions declared by this state."""

    def is_terminal(self) -> bool:
        return not self.get_transitions()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = ["BaseState", "State"]
