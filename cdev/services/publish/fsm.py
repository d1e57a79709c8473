"""Step-table state machine runner.

A machine is a mapping from step name to handler. Each handler receives the
current state and either advances to a new state (whose step picks the next
handler) or finishes. Steps only move forward: a run visits each step at most
once, and a handler table that loops is reported instead of spinning.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from cdev.core.result import Err, Ok, Result
from cdev.services.publish.errors import PublishError, repo_state


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    state: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


type StepOutcome[S] = StepAdvance[S] | StepFinish
type StepHandler[S] = Callable[[S], Result[StepOutcome[S], PublishError]]

FINISH = StepFinish()


def advance[S](state: S) -> StepAdvance[S]:
    return StepAdvance(state=state)


def run_state_machine[S](
    *,
    initial_state: S,
    get_step: Callable[[S], str],
    handlers: Mapping[str, StepHandler[S]],
    on_advance: Callable[[S], None] | None = None,
) -> Result[S, PublishError]:
    """Run handlers until one finishes or fails; Ok carries the last state.

    A failing handler aborts the run. Callers recover by running the machine
    again from its first step, so every handler must be idempotent.
    """
    state = initial_state
    visited: set[str] = set()

    while (step := get_step(state)) not in visited:
        visited.add(step)
        handler = handlers.get(step)
        if handler is None:
            return Err(repo_state(f"unknown state machine step: {step}"))

        outcome = handler(state)
        if isinstance(outcome, Err):
            return outcome
        if isinstance(outcome.value, StepFinish):
            return Ok(state)

        state = outcome.value.state
        if on_advance is not None:
            on_advance(state)

    return Err(repo_state(f"state machine revisited step: {step}"))
