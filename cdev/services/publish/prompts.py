"""User interaction seam for the publish engine.

Services ask questions through ``Prompter`` and never read stdin themselves.
The CLI supplies a terminal implementation; tests use ``ScriptedPrompter``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Choice[T]:
    value: T
    label: str


class Prompter(Protocol):
    def select[V](self, message: str, choices: Sequence[Choice[V]], default: V | None = None) -> V:
        """Pick one of ``choices``."""
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        """Yes/no question."""
        ...

    def text(self, message: str, *, secret: bool = False) -> str:
        """Free text (may be empty)."""
        ...


def _empty_answers() -> list[object]:
    return []


def _empty_questions() -> list[str]:
    return []


@dataclass
class ScriptedPrompter:
    """Prompter answering from pre-recorded lists, for tests.

    Each kind of question consumes its own queue in order. Running out of
    answers raises, so an unexpected prompt fails the test loudly.
    """

    selections: list[object] = field(default_factory=_empty_answers)
    confirms: list[object] = field(default_factory=_empty_answers)
    texts: list[object] = field(default_factory=_empty_answers)
    asked: list[str] = field(default_factory=_empty_questions)

    def select[V](self, message: str, choices: Sequence[Choice[V]], default: V | None = None) -> V:
        self.asked.append(message)
        if not self.selections:
            raise AssertionError(f"unexpected select prompt: {message}")
        answer = self.selections.pop(0)
        for choice in choices:
            if choice.value == answer:
                return choice.value
        raise AssertionError(f"{answer!r} is not a choice for: {message}")

    def confirm(self, message: str, default: bool = False) -> bool:
        self.asked.append(message)
        if not self.confirms:
            raise AssertionError(f"unexpected confirm prompt: {message}")
        return bool(self.confirms.pop(0))

    def text(self, message: str, *, secret: bool = False) -> str:
        self.asked.append(message)
        if not self.texts:
            raise AssertionError(f"unexpected text prompt: {message}")
        return str(self.texts.pop(0))
