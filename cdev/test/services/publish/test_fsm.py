from __future__ import annotations

from dataclasses import dataclass, replace

from cdev.core.result import Err, Ok, Result
from cdev.services.publish.errors import PublishError
from cdev.services.publish.fsm import FINISH, StepOutcome, advance, run_state_machine


@dataclass(frozen=True, slots=True)
class _State:
    step: str
    counter: int


def test_advances_until_finish_and_reports_transitions() -> None:
    seen: list[_State] = []

    def step_a(s: _State) -> Result[StepOutcome[_State], PublishError]:
        return Ok(advance(replace(s, step="b", counter=s.counter + 1)))

    def step_b(s: _State) -> Result[StepOutcome[_State], PublishError]:
        return Ok(FINISH)

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "b": step_b},
        on_advance=seen.append,
    )

    assert result == Ok(_State(step="b", counter=1))
    assert seen == [_State(step="b", counter=1)]


def test_unknown_step_fails() -> None:
    result = run_state_machine(
        initial_state=_State(step="missing", counter=0),
        get_step=lambda s: s.step,
        handlers={},
    )

    assert isinstance(result, Err)
    assert result.error.kind == "repo_state"


def test_handler_error_stops_the_run() -> None:
    calls: list[str] = []

    def bad_step(s: _State) -> Result[StepOutcome[_State], PublishError]:
        calls.append(s.step)
        return Err(PublishError(kind="git_failed", message="push rejected"))

    def never(s: _State) -> Result[StepOutcome[_State], PublishError]:
        calls.append("never")
        return Ok(FINISH)

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": bad_step, "b": never},
    )

    assert isinstance(result, Err)
    assert result.error.message == "push rejected"
    assert calls == ["a"]


def test_revisiting_a_step_fails() -> None:
    def loop(s: _State) -> Result[StepOutcome[_State], PublishError]:
        return Ok(advance(replace(s, counter=s.counter + 1)))

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": loop},
    )

    assert isinstance(result, Err)
    assert "revisited" in result.error.message
