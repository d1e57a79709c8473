"""Branch and version derivation from the remote ref inventory.

The dev branch is always ``develop/<version>``. When the local version is
behind the newest ``release/<version>`` tag on the remote, the user picks a
bump and the new version is written back to package.json.
"""

from __future__ import annotations

from dataclasses import dataclass

from cdev.core.result import Err, Ok, Result
from cdev.git.repository import RemoteRef, Repository
from cdev.output.console import ConsoleProtocol
from cdev.services.publish.config import (
    DEV_BRANCH_PREFIX,
    MASTER_BRANCH,
    RELEASE_TAG_PREFIX,
    REMOTE_NAME,
)
from cdev.services.publish.errors import PublishError, git_failed, repo_state
from cdev.services.publish.manifest import write_version
from cdev.services.publish.model import BumpKind, RepoContext
from cdev.services.publish.prompts import Choice, Prompter
from cdev.services.publish.semver import SemVer, parse_version

_TAG_REF_PREFIX = f"refs/tags/{RELEASE_TAG_PREFIX}/"
_DEV_REF_PREFIX = f"refs/heads/{DEV_BRANCH_PREFIX}/"
_BUMP_ORDER: tuple[BumpKind, ...] = ("patch", "minor", "major")


@dataclass(frozen=True, slots=True)
class RemoteRefInventory:
    """Snapshot of remote refs. Never cached: always rebuilt from ls-remote."""

    release_versions: tuple[SemVer, ...]
    dev_versions: tuple[SemVer, ...]
    heads: frozenset[str]
    tags: frozenset[str]

    @property
    def latest_release(self) -> SemVer | None:
        return self.release_versions[0] if self.release_versions else None

    @property
    def has_master(self) -> bool:
        return MASTER_BRANCH in self.heads

    def has_branch(self, name: str) -> bool:
        return name in self.heads

    def has_tag(self, name: str) -> bool:
        return name in self.tags


def build_inventory(refs: list[RemoteRef]) -> RemoteRefInventory:
    releases: set[SemVer] = set()
    devs: set[SemVer] = set()
    heads: set[str] = set()
    tags: set[str] = set()

    for ref in refs:
        if ref.name.startswith("refs/heads/"):
            heads.add(ref.name.removeprefix("refs/heads/"))
        elif ref.name.startswith("refs/tags/"):
            tags.add(ref.name.removeprefix("refs/tags/"))

        if ref.name.startswith(_TAG_REF_PREFIX):
            v = parse_version(ref.name.removeprefix(_TAG_REF_PREFIX))
            if v is not None:
                releases.add(v)
        elif ref.name.startswith(_DEV_REF_PREFIX):
            v = parse_version(ref.name.removeprefix(_DEV_REF_PREFIX))
            if v is not None:
                devs.add(v)

    return RemoteRefInventory(
        release_versions=tuple(sorted(releases, reverse=True)),
        dev_versions=tuple(sorted(devs, reverse=True)),
        heads=frozenset(heads),
        tags=frozenset(tags),
    )


def fetch_inventory(repo: Repository) -> Result[RemoteRefInventory, PublishError]:
    refs = repo.ls_remote(REMOTE_NAME)
    if isinstance(refs, Err):
        return Err(git_failed(refs.error, message="could not list remote refs"))
    return Ok(build_inventory(refs.value))


def next_version(declared: SemVer, latest: SemVer | None, bump: BumpKind | None) -> SemVer:
    """Version to publish.

    ``declared`` wins when it is not behind ``latest`` (equal counts as not
    behind). Otherwise ``bump`` is applied to ``latest``.
    """
    if latest is None or declared >= latest:
        return declared
    if bump is None:
        raise ValueError("a bump kind is required when the local version is behind")
    return latest.bump(bump)


class BranchVersionResolver:
    def __init__(
        self,
        *,
        repo: Repository,
        prompter: Prompter,
        console: ConsoleProtocol,
    ) -> None:
        self._repo = repo
        self._prompter = prompter
        self._console = console

    def resolve(self, ctx: RepoContext) -> Result[str, PublishError]:
        """Pin ``ctx.branch`` (and possibly bump ``ctx.resolved_version``)."""
        if ctx.branch is not None:
            return Ok(ctx.branch)

        declared = parse_version(ctx.declared_version)
        if declared is None:
            return Err(repo_state(f"invalid version: {ctx.declared_version}"))

        inventory = fetch_inventory(self._repo)
        if isinstance(inventory, Err):
            return inventory

        latest = inventory.value.latest_release
        bump: BumpKind | None = None
        if latest is not None and declared < latest:
            self._console.warning(
                f"local version {declared} is behind the latest release {latest}"
            )
            bump = self._prompter.select(
                "Select the version bump",
                [Choice(kind, f"{kind} ({latest} -> {latest.bump(kind)})") for kind in _BUMP_ORDER],
                default="patch",
            )

        resolved = next_version(declared, latest, bump)
        pinned = ctx.pin_branch(str(resolved))
        if isinstance(pinned, Err):
            return pinned

        written = write_version(ctx.source_dir, ctx.resolved_version)
        if isinstance(written, Err):
            return written
        if written.value:
            self._console.success(f"package.json version -> {ctx.resolved_version}")

        self._console.success(f"dev branch: {pinned.value}")
        return pinned
