"""Output formatting (console protocol and error presentation)."""

from .console import ConsoleProtocol, MockConsole, OutputRecord, RichConsole, Style

__all__ = ["ConsoleProtocol", "MockConsole", "OutputRecord", "RichConsole", "Style"]
