from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Literal

from cdev.core.config import DEFAULT_BUILD_CMD
from cdev.core.result import Err, Ok, Result
from cdev.services.publish.config import dev_branch
from cdev.services.publish.errors import PublishError, repo_state

OwnerKind = Literal["user", "org"]
Transport = Literal["ssh", "https"]
BumpKind = Literal["major", "minor", "patch"]


class HostType(StrEnum):
    GITHUB = "github"
    GITEE = "gitee"

    @property
    def label(self) -> str:
        return {"github": "GitHub", "gitee": "Gitee"}[self.value]


@dataclass(frozen=True, slots=True)
class PublishOptions:
    """Mode flags of one publish invocation."""

    refresh_host: bool = False
    refresh_token: bool = False
    refresh_owner: bool = False
    refresh_publish_target: bool = False
    build_cmd: str = DEFAULT_BUILD_CMD
    production: bool = False


@dataclass(slots=True)
class RepoContext:
    """Aggregate state of one publish invocation.

    ``name``, ``declared_version`` and ``source_dir`` never change.
    ``branch`` is pinned once per invocation, after any version bump.
    """

    name: str
    declared_version: str
    source_dir: Path
    resolved_version: str = ""
    branch: str | None = None
    host_type: HostType | None = None
    login: str | None = None
    owner_kind: OwnerKind | None = None
    remote_url: str | None = None
    transport: Transport | None = None
    publish_target: str | None = None
    token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.resolved_version:
            self.resolved_version = self.declared_version

    def pin_branch(self, version: str) -> Result[str, PublishError]:
        """Set ``resolved_version`` and derive ``branch`` exactly once."""
        branch = dev_branch(version)
        if self.branch is not None and self.branch != branch:
            return Err(
                repo_state(
                    f"branch already set to {self.branch}, refusing to switch to {branch}",
                )
            )
        self.resolved_version = version
        self.branch = branch
        return Ok(branch)
