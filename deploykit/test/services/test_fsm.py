from __future__ import annotations

from dataclasses import dataclass, replace

from deploykit.core.result import Err, Ok, Result
from deploykit.services.fsm import FINISH, StepOutcome, advance, run_state_machine


@dataclass(frozen=True, slots=True)
class _State:
    step: str
    counter: int


def _unknown(step: str) -> str:
    return f"unknown step: {step}"


def test_run_state_machine_advances_to_finish() -> None:
    def step_a(s: _State) -> Result[StepOutcome[_State], str]:
        return Ok(advance(replace(s, step="b", counter=s.counter + 1)))

    def step_b(s: _State) -> Result[StepOutcome[_State], str]:
        return Ok(FINISH)

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "b": step_b},
        unknown_step=_unknown,
    )

    assert result == Ok(_State(step="b", counter=1))


def test_run_state_machine_loops_on_same_step() -> None:
    def step_a(s: _State) -> Result[StepOutcome[_State], str]:
        if s.counter == 3:
            return Ok(advance(replace(s, step="done")))
        return Ok(advance(replace(s, counter=s.counter + 1)))

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "done": lambda s: Ok(FINISH)},
        unknown_step=_unknown,
    )

    assert result == Ok(_State(step="done", counter=3))


def test_run_state_machine_unknown_step_fails() -> None:
    result = run_state_machine(
        initial_state=_State(step="missing", counter=0),
        get_step=lambda s: s.step,
        handlers={},
        unknown_step=_unknown,
    )

    assert result == Err("unknown step: missing")


def test_run_state_machine_stops_on_handler_error() -> None:
    visited: list[str] = []

    def step_a(s: _State) -> Result[StepOutcome[_State], str]:
        visited.append("a")
        return Err("boom")

    def step_b(s: _State) -> Result[StepOutcome[_State], str]:
        visited.append("b")
        return Ok(FINISH)

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "b": step_b},
        unknown_step=_unknown,
    )

    assert result == Err("boom")
    assert visited == ["a"]
