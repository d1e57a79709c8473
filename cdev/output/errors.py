"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cdev.core.errors import ErrorCode
from cdev.output.console import Style
from cdev.services.publish.errors import PublishError

if TYPE_CHECKING:
    from cdev.output.console import ConsoleProtocol

__all__ = ["print_publish_error", "publish_error_exit_code"]


def print_publish_error(error: PublishError, console: ConsoleProtocol) -> None:
    """Print publish error to console with appropriate formatting."""
    match error:
        case PublishError(kind="build_failed", action=action) if action:
            console.error(f"{error.message} [{action}]")
        case _:
            console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def publish_error_exit_code(error: PublishError) -> int:
    """Get exit code for a publish error."""
    match error.kind:
        case "credential" | "auth" | "ssh_unavailable" | "home_dir_unavailable":
            return int(ErrorCode.ENV_ERROR)
        case "network" | "connect_timeout" | "build_timeout" | "host_init_failed":
            return int(ErrorCode.NETWORK_ERROR)
        case "build_failed":
            return int(ErrorCode.BUILD_ERROR)
        case "repo_create" | "git_failed":
            return int(ErrorCode.IO_ERROR)
        case _:
            return int(ErrorCode.USER_ERROR)
