from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from cdev.git.repository import GitError

PublishErrorKind = Literal[
    "credential",
    "auth",
    "home_dir_unavailable",
    "host_init_failed",
    "network",
    "repo_state",
    "repo_create",
    "git_failed",
    "ssh_unavailable",
    "connect_timeout",
    "build_timeout",
    "build_failed",
    "command_not_allowed",
    "publish_aborted",
]


@dataclass(frozen=True, slots=True)
class PublishError:
    kind: PublishErrorKind
    message: str
    hint: str | None = None
    # Relay action that failed the build ("install failed", ...).
    action: str | None = None


def git_failed(error: GitError, *, message: str | None = None) -> PublishError:
    return PublishError(
        kind="git_failed",
        message=message or f"git {error.command} failed",
        hint=error.message or None,
    )


def repo_state(message: str, hint: str | None = None) -> PublishError:
    return PublishError(kind="repo_state", message=message, hint=hint)
