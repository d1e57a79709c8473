"""Terminal prompter backed by typer prompts.

Choices are shown as a numbered list and picked by number, which also works
when stdin is a pipe.
"""

from __future__ import annotations

from collections.abc import Sequence

import typer

from cdev.services.publish.prompts import Choice


class TyperPrompter:
    def select[V](self, message: str, choices: Sequence[Choice[V]], default: V | None = None) -> V:
        if not choices:
            raise ValueError(f"no choices for: {message}")

        default_index = 1
        for i, choice in enumerate(choices, start=1):
            if choice.value == default:
                default_index = i
            typer.echo(f"  {i}) {choice.label}")

        while True:
            raw = typer.prompt(message, default=str(default_index))
            try:
                index = int(raw.strip())
            except ValueError:
                index = 0
            if 1 <= index <= len(choices):
                return choices[index - 1].value
            typer.echo(f"enter a number between 1 and {len(choices)}", err=True)

    def confirm(self, message: str, default: bool = False) -> bool:
        return typer.confirm(message, default=default)

    def text(self, message: str, *, secret: bool = False) -> str:
        value: str = typer.prompt(message, default="", hide_input=secret, show_default=False)
        return value
