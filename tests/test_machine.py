from __future__ import annotations

"""Unit tests for the state machine run loop."""

import asyncio
import logging
from typing import Callable, Iterable, Optional

import pytest

from engine.context import StateContext
from engine.errors import (
    AlreadyRunningError,
    ErrorLimitExceeded,
    RegistryValidationError,
    UnknownStateError,
)
from engine.event import Event, create_event
from engine.machine import MachineSettings, StateMachine
from engine.registry import StateRegistry
from engine.routing import RetryPolicy, data_equals, fan_out
from engine.state import BaseState, State
from engine.transition import Transition, on

FAST = MachineSettings(poll_interval=0, error_backoff=0)

Script = Callable[[StateContext], Optional[Event]]


class ScriptedState(BaseState):
    """State whose execute step is a plain function of the context."""

    def __init__(
        self,
        name: str,
        transitions: Iterable[Transition] = (),
        script: Script | None = None,
    ) -> None:
        super().__init__(name)
        self.transitions = list(transitions)
        self.script = script
        self.calls: list[str] = []

    async def enter(self, context: StateContext) -> None:
        self.calls.append("enter")
        await super().enter(context)

    async def execute(self, context: StateContext) -> Event | None:
        self.calls.append("execute")
        return self.script(context) if self.script else None

    async def exit(self, context: StateContext) -> None:
        self.calls.append("exit")
        await super().exit(context)

    def get_transitions(self) -> list[Transition]:
        return self.transitions


def emit(event_type: str) -> Script:
    return lambda context: create_event(event_type)


def machine_for(*states: ScriptedState, initial: str | None = None, data=None, settings=FAST):
    registry = StateRegistry()
    for state in states:
        registry.register(state)
    context = StateContext(data=dict(data or {}))
    return StateMachine(registry, initial or states[0].name, context, settings=settings)


def visited(machine: StateMachine) -> list[str]:
    return [snapshot.state for snapshot in machine.context.history]


async def run_briefly(machine: StateMachine, seconds: float = 0.02) -> None:
    task = asyncio.create_task(machine.start())
    await asyncio.sleep(seconds)
    await machine.stop()
    await task


def test_scripted_state_satisfies_protocol() -> None:
    assert isinstance(ScriptedState("S"), State)


def test_linear_run_halts_at_terminal_state() -> None:
    first = ScriptedState("S1", [on("GO").go_to("S2")], emit("GO"))
    second = ScriptedState("S2")
    machine = machine_for(first, second)

    asyncio.run(machine.start())

    assert not machine.is_running
    assert machine.current_state_name == "S2"
    assert visited(machine) == ["S1", "S2"]
    assert first.calls == ["enter", "execute", "exit"]
    assert second.calls == ["enter", "execute"]


def test_transition_snapshot_records_origin_and_event() -> None:
    machine = machine_for(
        ScriptedState("S1", [on("GO").go_to("S2")], emit("GO")),
        ScriptedState("S2"),
    )
    asyncio.run(machine.start())

    snapshot = machine.context.history[-1]
    assert snapshot.data == {"from": "S1", "event": "GO"}
    assert machine.context.history[0].message == "Initial state"


def test_double_start_is_rejected() -> None:
    waiting = ScriptedState("WAIT", [on("GO").go_to("WAIT")])
    machine = machine_for(waiting)

    async def scenario() -> None:
        task = asyncio.create_task(machine.start())
        await asyncio.sleep(0.01)
        assert machine.is_running
        with pytest.raises(AlreadyRunningError):
            await machine.start()
        await machine.stop()
        await task

    asyncio.run(scenario())
    assert waiting.calls.count("enter") == 1


def test_unknown_initial_state_is_rejected() -> None:
    machine = machine_for(ScriptedState("S1"), initial="MISSING")

    with pytest.raises(UnknownStateError, match="Initial state 'MISSING' not found"):
        asyncio.run(machine.start())
    assert not machine.is_running
    assert machine.context.history == []


def test_terminal_state_is_not_executed_again() -> None:
    terminal = ScriptedState("END")
    machine = machine_for(terminal)

    asyncio.run(machine.start())

    assert terminal.calls == ["enter", "execute"]


def test_first_declared_transition_is_taken() -> None:
    start = ScriptedState(
        "START",
        [
            on("GO").go_to_if("A", lambda event, data: True),
            on("GO").go_to_if("B", lambda event, data: True),
        ],
        emit("GO"),
    )
    machine = machine_for(start, ScriptedState("A"), ScriptedState("B"))

    asyncio.run(machine.start())

    assert machine.current_state_name == "A"


def test_stop_is_idempotent_and_exits_once() -> None:
    waiting = ScriptedState("WAIT", [on("GO").go_to("WAIT")])
    machine = machine_for(waiting)

    async def scenario() -> None:
        task = asyncio.create_task(machine.start())
        await asyncio.sleep(0.01)
        await machine.stop()
        await machine.stop()
        await task

    asyncio.run(scenario())

    assert not machine.is_running
    assert waiting.calls.count("exit") == 1


def test_stop_before_start_is_a_no_op() -> None:
    state = ScriptedState("S1")
    machine = machine_for(state)
    asyncio.run(machine.stop())
    assert state.calls == []


def test_bounded_retry_then_give_up() -> None:
    policy = RetryPolicy("WORK", max_attempts=3)

    def fail(context: StateContext) -> Event:
        policy.record_failure(context.data)
        return create_event("FAIL")

    worker = ScriptedState("WORK", policy.transitions("FAIL", "RETRY", "GIVE_UP"), fail)
    retry = ScriptedState("RETRY", [on("BACK").go_to("WORK")], emit("BACK"))
    give_up = ScriptedState("GIVE_UP")
    machine = machine_for(worker, retry, give_up)

    asyncio.run(machine.start())

    assert visited(machine) == ["WORK", "RETRY", "WORK", "RETRY", "WORK", "GIVE_UP"]
    assert policy.count(machine.context.data) == 3
    assert worker.calls.count("execute") == 3
    assert retry.calls.count("execute") == 2


@pytest.mark.parametrize(
    ("mode", "expected"),
    [("monitor", "AUDIT_END"), ("trigger", "TRIGGER_END"), ("schedule", "SCHEDULE_END")],
)
def test_mode_fan_out_selects_completion_state(mode: str, expected: str) -> None:
    routes = {"monitor": "AUDIT_END", "trigger": "TRIGGER_END", "schedule": "SCHEDULE_END"}
    start = ScriptedState("SYNC", fan_out("DONE", routes, key="mode"), emit("DONE"))
    ends = [ScriptedState(name) for name in routes.values()]
    machine = machine_for(start, *ends, data={"mode": mode})

    asyncio.run(machine.start())

    assert machine.current_state_name == expected
    assert visited(machine) == ["SYNC", expected]


def test_missing_target_keeps_current_state(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR)
    source = ScriptedState("S1", [on("GO").go_to("MISSING")], emit("GO"))
    machine = machine_for(source)

    asyncio.run(run_briefly(machine))

    assert machine.current_state_name == "S1"
    assert visited(machine) == ["S1"]
    assert source.calls.count("execute") > 1
    assert "Target state 'MISSING' not found" in caplog.text


def test_validate_targets_rejects_missing_target_at_start() -> None:
    source = ScriptedState("S1", [on("GO").go_to("MISSING")], emit("GO"))
    machine = machine_for(source, settings=MachineSettings(validate_targets=True))

    with pytest.raises(RegistryValidationError) as excinfo:
        asyncio.run(machine.start())
    assert "MISSING" in excinfo.value.problems[0]
    assert source.calls == []


def test_unmatched_event_is_ignored(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="workflow.context")
    source = ScriptedState("S1", [on("GO").go_to("S2")], emit("OTHER"))
    machine = machine_for(source, ScriptedState("S2"))

    asyncio.run(run_briefly(machine))

    assert machine.current_state_name == "S1"
    assert "No transition found for event 'OTHER' in state 'S1'" in caplog.text


def test_execute_errors_are_retried() -> None:
    failures = {"left": 2}

    def flaky(context: StateContext) -> Event:
        if failures["left"]:
            failures["left"] -= 1
            raise RuntimeError("temporary")
        return create_event("GO")

    flaky_state = ScriptedState("FLAKY", [on("GO").go_to("DONE")], flaky)
    machine = machine_for(flaky_state, ScriptedState("DONE"))

    asyncio.run(machine.start())

    assert machine.current_state_name == "DONE"
    assert flaky_state.calls.count("execute") == 3
    assert machine.failure is None


def test_error_ceiling_stops_the_machine() -> None:
    def broken(context: StateContext) -> Event:
        raise RuntimeError("always")

    state = ScriptedState("BROKEN", [on("GO").go_to("BROKEN")], broken)
    settings = MachineSettings(poll_interval=0, error_backoff=0, max_consecutive_errors=3)
    machine = machine_for(state, settings=settings)

    asyncio.run(machine.start())

    assert not machine.is_running
    assert isinstance(machine.failure, ErrorLimitExceeded)
    assert machine.failure.attempts == 3
    assert str(machine.failure.original) == "always"
    assert state.calls.count("execute") == 3
    assert state.calls.count("exit") == 1


def test_event_returned_after_stop_is_discarded() -> None:
    release = asyncio.Event()

    class SlowState(ScriptedState):
        async def execute(self, context: StateContext) -> Event | None:
            self.calls.append("execute")
            await release.wait()
            return create_event("GO")

    slow = SlowState("SLOW", [on("GO").go_to("NEXT")])
    following = ScriptedState("NEXT")
    machine = machine_for(slow, following)

    async def scenario() -> None:
        task = asyncio.create_task(machine.start())
        await asyncio.sleep(0.01)
        await machine.stop()
        release.set()
        await task

    asyncio.run(scenario())

    assert machine.current_state_name == "SLOW"
    assert following.calls == []
    assert slow.calls == ["enter", "execute", "exit"]


async def wait_for(predicate: Callable[[], bool]) -> None:
    while not predicate():
        await asyncio.sleep(0)


def test_stop_during_transition_exit_does_not_enter_target() -> None:
    release = asyncio.Event()

    class SlowExit(ScriptedState):
        async def exit(self, context: StateContext) -> None:
            self.calls.append("exit")
            await release.wait()

    source = SlowExit("A", [on("GO").go_to("B")], emit("GO"))
    target = ScriptedState("B", [on("GO").go_to("B")])
    machine = machine_for(source, target)

    async def scenario() -> None:
        task = asyncio.create_task(machine.start())
        await wait_for(lambda: "exit" in source.calls)
        stopping = asyncio.create_task(machine.stop())
        await asyncio.sleep(0)
        release.set()
        await stopping
        await task

    asyncio.run(scenario())

    assert source.calls == ["enter", "execute", "exit"]
    assert target.calls == []
    assert machine.current_state_name == "A"
    assert not machine.is_running


def test_stop_during_enter_waits_then_exits_once() -> None:
    release = asyncio.Event()

    class SlowEnter(ScriptedState):
        async def enter(self, context: StateContext) -> None:
            self.calls.append("enter")
            await release.wait()

    source = ScriptedState("A", [on("GO").go_to("B")], emit("GO"))
    target = SlowEnter("B", [on("GO").go_to("B")])
    machine = machine_for(source, target)

    async def scenario() -> None:
        task = asyncio.create_task(machine.start())
        await wait_for(lambda: "enter" in target.calls)
        stopping = asyncio.create_task(machine.stop())
        await asyncio.sleep(0)
        assert target.calls == ["enter"]
        release.set()
        await stopping
        await task

    asyncio.run(scenario())

    assert target.calls == ["enter", "exit"]
    assert source.calls.count("exit") == 1
    assert machine.current_state_name == "B"


def test_failed_enter_is_retried_before_execute(caplog: pytest.LogCaptureFixture) -> None:
    class FlakyEnter(ScriptedState):
        failures = 1

        async def enter(self, context: StateContext) -> None:
            await super().enter(context)
            if self.failures:
                self.failures -= 1
                raise RuntimeError("not ready")

    source = ScriptedState("A", [on("GO").go_to("B")], emit("GO"))
    target = FlakyEnter("B")
    machine = machine_for(source, target)

    asyncio.run(machine.start())

    assert target.calls == ["enter", "enter", "execute"]
    assert visited(machine) == ["A", "B"]
    assert "Error entering state 'B': not ready" in caplog.text


def test_enter_failures_count_towards_error_ceiling() -> None:
    class BrokenEnter(ScriptedState):
        async def enter(self, context: StateContext) -> None:
            await super().enter(context)
            raise RuntimeError("never ready")

    source = ScriptedState("A", [on("GO").go_to("B")], emit("GO"))
    target = BrokenEnter("B", [on("GO").go_to("B")])
    settings = MachineSettings(poll_interval=0, error_backoff=0, max_consecutive_errors=2)
    machine = machine_for(source, target, settings=settings)

    asyncio.run(machine.start())

    assert isinstance(machine.failure, ErrorLimitExceeded)
    assert target.calls == ["enter", "enter"]
    assert "exit" not in target.calls


def test_enter_failure_propagates_from_start() -> None:
    class BrokenEnter(ScriptedState):
        async def enter(self, context: StateContext) -> None:
            raise RuntimeError("cannot enter")

    machine = machine_for(BrokenEnter("S1"))

    with pytest.raises(RuntimeError, match="cannot enter"):
        asyncio.run(machine.start())
    assert not machine.is_running


def test_run_wrapper_drives_machine_synchronously() -> None:
    machine = machine_for(
        ScriptedState("S1", [on("GO").go_to("S2")], emit("GO")),
        ScriptedState("S2"),
    )
    machine.run()
    assert machine.current_state_name == "S2"


def test_machine_accepts_plain_mapping() -> None:
    states = {
        "S1": ScriptedState("S1", [on("GO").go_to_if("S2", data_equals("ok", True))], emit("GO")),
        "S2": ScriptedState("S2"),
    }
    machine = StateMachine(states, "S1", StateContext(data={"ok": True}), settings=FAST)

    asyncio.run(machine.start())

    assert machine.current_state_name == "S2"
    assert sorted(machine.registry.names()) == ["S1", "S2"]
