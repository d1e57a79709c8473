"""Console output for the publish engine.

Services never print. They receive a ``ConsoleProtocol`` and report through
it: ``RichConsole`` writes to the terminal, ``MockConsole`` records what would
have been written so tests can assert on it.

Message kinds carry a fixed prefix (``OK``, ``error:``, ``warning:``,
``info:``); ``debug`` lines (git commands, state machine steps) only appear
with ``--verbose``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Protocol

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
]


class Style(StrEnum):
    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()  # verbose detail, relay build logs
    HEADER = auto()  # phase title


# (prefix, rich style) per prefixed message kind
_PREFIXES: dict[Style, tuple[str, str]] = {
    Style.SUCCESS: ("OK", "green"),
    Style.ERROR: ("error:", "red bold"),
    Style.WARNING: ("warning:", "yellow"),
    Style.INFO: ("info:", "cyan"),
}

_RICH_STYLES: dict[Style, str] = {
    Style.DEFAULT: "",
    Style.SUCCESS: "green",
    Style.ERROR: "red bold",
    Style.WARNING: "yellow",
    Style.INFO: "cyan",
    Style.DIM: "dim",
    Style.HEADER: "blue bold",
}


class ConsoleProtocol(Protocol):
    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Print ``message`` as-is (never interpreted as markup)."""
        ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def debug(self, message: str) -> None:
        """Diagnostic line, shown in verbose mode only."""
        ...

    def header(self, message: str) -> None:
        """Title of a publish phase."""
        ...


class RichConsole:
    def __init__(self, *, verbose: bool = False) -> None:
        # rich is only needed once something is printed to a terminal
        from rich.console import Console
        from rich.markup import escape

        self.verbose = verbose
        self._escape = escape
        self._console = Console(highlight=False)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._console.print(message, style=_RICH_STYLES[style] or None, markup=False)

    def success(self, message: str) -> None:
        self._prefixed(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._prefixed(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._prefixed(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._prefixed(Style.INFO, message)

    def debug(self, message: str) -> None:
        if self.verbose:
            self.print(message, Style.DIM)

    def header(self, message: str) -> None:
        self._console.print()
        self.print(message, Style.HEADER)

    def _prefixed(self, style: Style, message: str) -> None:
        prefix, rich_style = _PREFIXES[style]
        self._console.print(f"[{rich_style}]{prefix}[/{rich_style}]", self._escape(message))


@dataclass(frozen=True, slots=True)
class OutputRecord:
    message: str
    style: Style


def _no_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Records output instead of printing it.

    Prefixed kinds are stored with their prefix (``"OK pushed master"``) so
    assertions read like the terminal. ``debug`` is always recorded.
    """

    outputs: list[OutputRecord] = field(default_factory=_no_outputs)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self.outputs.append(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self._prefixed(Style.SUCCESS, message)

    def error(self, message: str) -> None:
        self._prefixed(Style.ERROR, message)

    def warning(self, message: str) -> None:
        self._prefixed(Style.WARNING, message)

    def info(self, message: str) -> None:
        self._prefixed(Style.INFO, message)

    def debug(self, message: str) -> None:
        self.print(message, Style.DIM)

    def header(self, message: str) -> None:
        self.print(message, Style.HEADER)

    def _prefixed(self, style: Style, message: str) -> None:
        prefix, _ = _PREFIXES[style]
        self.print(f"{prefix} {message}", style)

    # -- assertions ------------------------------------------------------

    def clear(self) -> None:
        self.outputs.clear()

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style is Style.ERROR for o in self.outputs)

    def has_success(self) -> bool:
        return any(o.style is Style.SUCCESS for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
