"""Result values for operations that can fail.

Every fallible call in cdev returns either ``Ok(value)`` or ``Err(error)``
instead of raising. Callers branch with ``isinstance`` and return early:

    branch = repo.current_branch()
    if isinstance(branch, Err):
        return Err(git_failed(branch.error))
    console.print(branch.value)

Errors travel unchanged up to the phase boundary of the publish engine, where
the CLI turns them into a message and an exit code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
