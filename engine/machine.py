from __future__ import annotations

"""State machine engine: registry lookup, run loop, and stop handling."""

import asyncio
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from engine.context import StateContext
from engine.errors import AlreadyRunningError, ErrorLimitExceeded, UnknownStateError
from engine.event import Event
from engine.registry import StateRegistry
from engine.state import State
from engine.transition import find_transition


class MachineSettings(BaseModel):
    """Timing and failure policy for the run loop."""

    poll_interval: float = Field(default=0.1, ge=0)
    """Delay before re-executing a state that returned no event."""

    error_backoff: float = Field(default=1.0, ge=0)
    """Delay before re-executing a state whose execute step raised."""

    max_consecutive_errors: Optional[int] = Field(default=None, ge=1)
    """Stop the run after this many failed steps in a row; None retries forever."""

    validate_targets: bool = False
    """Check that every transition target is registered before starting."""


class StateMachine:
    """Drives one state at a time until a terminal state or an external stop.

    Failures raised by a state once the loop is running are logged and retried
    against the same state; only the checks performed by ``start`` before any
    state code runs propagate to the caller.
    """

    def __init__(
        self,
        states: StateRegistry | Mapping[str, State],
        initial_state: str,
        context: StateContext,
        *,
        settings: MachineSettings | None = None,
    ) -> None:
        self._registry = states if isinstance(states, StateRegistry) else StateRegistry(states)
        self._initial_state = initial_state
        self._context = context
        self._settings = settings or MachineSettings()
        self._current: State | None = None
        self._active: State | None = None
        self._running = False
        self._lifecycle = asyncio.Lock()
        self.failure: ErrorLimitExceeded | None = None

    @property
    def context(self) -> StateContext:
        return self._context

    @property
    def registry(self) -> StateRegistry:
        return self._registry

    @property
    def settings(self) -> MachineSettings:
        return self._settings

    @property
    def current_state(self) -> State | None:
        return self._current

    @property
    def current_state_name(self) -> str | None:
        return self._current.name if self._current is not None else None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Enter the initial state and run until the machine stops."""

        if self._running:
            raise AlreadyRunningError()

        initial = self._registry.get(self._initial_state)
        if initial is None:
            raise UnknownStateError(
                self._initial_state,
                f"Initial state '{self._initial_state}' not found",
            )
        if self._settings.validate_targets:
            self._registry.validate(self._initial_state)

        self.failure = None
        self._running = True
        self._lifecycle = asyncio.Lock()
        self._active = None
        self._current = initial
        self._context.record(initial.name, "Initial state")

        try:
            await self._enter(initial)
        except Exception as exc:
            self._context.logger.error(
                "State machine error entering '%s': %s", initial.name, exc
            )
            self._running = False
            raise

        await self._run_loop()

    def run(self) -> None:
        """Synchronous wrapper for non-event-loop callers."""

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop = asyncio.new_event_loop()
            try:
                loop.run_until_complete(self.start())
            finally:
                loop.close()
            return
        raise RuntimeError("StateMachine.run cannot be called from an active event loop; use start")

    async def stop(self) -> None:
        """Stop the run loop and exit the current state.

        Cooperative only: an in-flight step finishes before the loop notices.
        A transition already in progress completes its exit first; the target
        it was heading for is never entered.
        """

        if not self._running:
            return

        self._running = False
        async with self._lifecycle:
            state = self._active
            if state is None:
                return
            self._active = None
            try:
                await state.exit(self._context)
            except Exception as exc:
                self._context.logger.error("Error exiting state '%s': %s", state.name, exc)

    async def _run_loop(self) -> None:
        consecutive_errors = 0

        while self._running and self._current is not None:
            state = self._current
            phase = "in"
            try:
                if self._active is not state:
                    phase = "entering"
                    await self._enter(state)
                    if not self._running:
                        break
                    phase = "in"

                event = await state.execute(self._context)
                if not self._running:
                    break

                if event is None:
                    if not state.get_transitions():
                        self._context.logger.info(
                            "Terminal state '%s' reached - stopping state machine",
                            state.name,
                        )
                        self._running = False
                        break
                    consecutive_errors = 0
                    await asyncio.sleep(self._settings.poll_interval)
                    continue

                await self._dispatch(state, event)
                consecutive_errors = 0
            except Exception as exc:
                consecutive_errors += 1
                self._context.logger.error(
                    "Error %s state '%s': %s", phase, state.name, exc, exc_info=True
                )
                limit = self._settings.max_consecutive_errors
                if limit is not None and consecutive_errors >= limit:
                    self.failure = ErrorLimitExceeded(state.name, consecutive_errors, exc)
                    self._context.logger.error("%s - stopping state machine", self.failure)
                    await self.stop()
                    break
                await asyncio.sleep(self._settings.error_backoff)
                continue

            # Yield once per step so a concurrent stop() can run.
            await asyncio.sleep(0)

    async def _enter(self, state: State) -> None:
        async with self._lifecycle:
            if not self._running:
                return
            await state.enter(self._context)
            self._active = state

    async def _dispatch(self, state: State, event: Event) -> None:
        transition = find_transition(state.get_transitions(), event, self._context.data)
        if transition is None:
            self._context.logger.debug(
                "No transition found for event '%s' in state '%s'", event.type, state.name
            )
            return

        target = self._registry.get(transition.target_state)
        if target is None:
            self._context.logger.error("Target state '%s' not found", transition.target_state)
            return

        self._context.logger.info(
            "Transitioning from '%s' to '%s' on event '%s'",
            state.name,
            target.name,
            event.type,
        )
        # Exit and switch hold the lifecycle lock; the target is entered at
        # the top of the next step, and only while the machine still runs.
        async with self._lifecycle:
            if self._active is state:
                await state.exit(self._context)
                self._active = None
            if not self._running:
                return
            self._current = target
            self._context.record(
                target.name,
                message=f"Transition on {event.type}",
                data={"from": state.name, "event": event.type},
            )


__all__ = ["MachineSettings", "StateMachine"]
