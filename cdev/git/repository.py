"""Git repository façade.

``Repository`` wraps the ``git`` executable for one working copy. Every
operation the publish engine needs is a method here, and every method returns
a Result, so a failing git command surfaces as ``Err(GitError)`` carrying the
command and git's own message.

Usage:
    repo = Repository(Path("/path/to/project"))

    match repo.status():
        case Ok(status):
            if status.conflicted:
                print("resolve conflicts first")
        case Err(e):
            print(f"git failed: {e.message}")
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from cdev.core.result import Err, Ok, Result
from cdev.platform.process import ProcessError
from cdev.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone", "ls-remote"})

# Unmerged XY pairs from `git status --porcelain` (see git-status(1)).
_CONFLICT_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})

__all__ = [
    "GitError",
    "GitStatus",
    "RemoteRef",
    "Repository",
    "StatusEntry",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed (e.g. "push origin master")
        message: git's error output
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in git status.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??", "UU")
        path: File path (the new name for renames and copies)
        orig_path: Source path of a rename or copy
    """

    xy: str
    path: str
    orig_path: str | None = None

    @property
    def is_conflicted(self) -> bool:
        return self.xy in _CONFLICT_CODES

    @property
    def paths(self) -> tuple[str, ...]:
        """Every path touched by this entry (both sides of a rename)."""
        if self.orig_path is not None:
            return (self.orig_path, self.path)
        return (self.path,)


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed ``git status --porcelain=v1 -z``."""

    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return len(self.entries) == 0

    @property
    def conflicted(self) -> list[StatusEntry]:
        return [e for e in self.entries if e.is_conflicted]

    @property
    def changed(self) -> list[StatusEntry]:
        """Untracked, added, deleted, modified and renamed entries."""
        return [e for e in self.entries if not e.is_conflicted]

    def changed_paths(self) -> list[str]:
        """Paths to stage, in status order, without duplicates."""
        seen: dict[str, None] = {}
        for entry in self.changed:
            for path in entry.paths:
                seen.setdefault(path, None)
        return list(seen)


@dataclass(frozen=True, slots=True)
class RemoteRef:
    """One line of ``git ls-remote``."""

    sha: str
    name: str  # e.g. refs/tags/release/1.2.0


class Repository:
    """Git operations on a single working copy.

    Attributes:
        path: Path to the working copy root
    """

    def __init__(
        self,
        path: Path,
        *,
        on_command: Callable[[list[str]], None] | None = None,
    ) -> None:
        """Initialize repository.

        Args:
            path: Working copy root (may not be a repository yet)
            on_command: Called with the argument list before each git command
        """
        self.path = path
        self._on_command = on_command

    def exists(self) -> bool:
        """Check for local git metadata (a .git dir or gitfile)."""
        return (self.path / ".git").exists()

    # -- setup -----------------------------------------------------------

    def init(self, initial_branch: str = "master") -> Result[None, GitError]:
        return self._checked(["init", f"--initial-branch={initial_branch}"])

    def remotes(self) -> Result[dict[str, str], GitError]:
        """Map of remote name to fetch URL."""
        result = self._git(["remote", "-v"])
        if isinstance(result, Err):
            return result
        remotes: dict[str, str] = {}
        for line in result.value.splitlines():
            parts = line.split()
            if len(parts) >= 2:
                remotes.setdefault(parts[0], parts[1])
        return Ok(remotes)

    def add_remote(self, name: str, url: str) -> Result[None, GitError]:
        return self._checked(["remote", "add", name, url])

    # -- working tree ----------------------------------------------------

    def status(self) -> Result[GitStatus, GitError]:
        """Runs `git status --porcelain=v1 -z` and parses the output.

        ``-z`` keeps paths unquoted and gives the source of a rename as its
        own field.
        """
        result = self._git(["status", "--porcelain=v1", "-z"])
        if isinstance(result, Err):
            return result
        return Ok(self._parse_status(result.value))

    def add(self, paths: list[str]) -> Result[None, GitError]:
        """Stage ``paths``, including deletions."""
        if not paths:
            return Ok(None)
        return self._checked(["add", "-A", "--", *paths])

    def commit(self, message: str) -> Result[None, GitError]:
        return self._checked(["commit", "-m", message])

    def stash_list(self) -> Result[list[str], GitError]:
        result = self._git(["stash", "list"])
        if isinstance(result, Err):
            return result
        return Ok([ln for ln in result.value.splitlines() if ln.strip()])

    def stash_pop(self) -> Result[None, GitError]:
        return self._checked(["stash", "pop"])

    def has_commits(self) -> bool:
        """False for a freshly initialized repository."""
        return isinstance(self._git(["rev-parse", "--verify", "--quiet", "HEAD"]), Ok)

    # -- branches --------------------------------------------------------

    def current_branch(self) -> Result[str, GitError]:
        result = self._git(["symbolic-ref", "--short", "HEAD"])
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip())

    def local_branches(self) -> Result[list[str], GitError]:
        result = self._git(["branch", "--list", "--format=%(refname:short)"])
        if isinstance(result, Err):
            return result
        return Ok([ln.strip() for ln in result.value.splitlines() if ln.strip()])

    def checkout(self, branch: str, *, create: bool = False) -> Result[None, GitError]:
        args = ["checkout", "-b", branch] if create else ["checkout", branch]
        return self._checked(args)

    def delete_branch(self, branch: str) -> Result[None, GitError]:
        return self._checked(["branch", "-D", branch])

    def merge(self, branch: str) -> Result[None, GitError]:
        """Merge ``branch`` into the current branch (no fast-forward commit)."""
        return self._checked(["merge", "--no-edit", "--no-ff", branch])

    # -- tags ------------------------------------------------------------

    def local_tags(self) -> Result[list[str], GitError]:
        result = self._git(["tag", "--list"])
        if isinstance(result, Err):
            return result
        return Ok([ln.strip() for ln in result.value.splitlines() if ln.strip()])

    def add_tag(self, name: str, message: str) -> Result[None, GitError]:
        return self._checked(["tag", "-a", name, "-m", message])

    def delete_tag(self, name: str) -> Result[None, GitError]:
        return self._checked(["tag", "-d", name])

    # -- remote ----------------------------------------------------------

    def ls_remote(self, remote: str = "origin") -> Result[list[RemoteRef], GitError]:
        """List remote heads and tags (peeled tag entries are skipped)."""
        result = self._git(["ls-remote", "--refs", remote])
        if isinstance(result, Err):
            return result
        refs: list[RemoteRef] = []
        for line in result.value.splitlines():
            parts = line.split("\t", 1)
            if len(parts) != 2:
                continue
            refs.append(RemoteRef(sha=parts[0].strip(), name=parts[1].strip()))
        return Ok(refs)

    def push(
        self,
        remote: str,
        refspec: str,
        *,
        set_upstream: bool = False,
    ) -> Result[None, GitError]:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args.extend([remote, refspec])
        return self._checked(args)

    def delete_remote_ref(self, remote: str, ref: str) -> Result[None, GitError]:
        """Delete a branch or tag on the remote (``ref`` may be fully qualified)."""
        return self._checked(["push", remote, "--delete", ref])

    def pull(
        self,
        remote: str,
        branch: str,
        *,
        allow_unrelated_histories: bool = False,
    ) -> Result[None, GitError]:
        args = ["pull", "--no-rebase", "--no-edit"]
        if allow_unrelated_histories:
            args.append("--allow-unrelated-histories")
        args.extend([remote, branch])
        return self._checked(args)

    # -- internals -------------------------------------------------------

    def _checked(self, args: list[str]) -> Result[None, GitError]:
        result = self._git(args)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def _git(self, args: list[str]) -> Result[str, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(self._to_git_error(args, result.error))
        return Ok(result.value)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this working copy."""
        if self._on_command is not None:
            self._on_command(args)
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        # An https remote without stored credentials must fail, not wait on a prompt.
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        return run_process(
            ["git", "-C", str(self.path), *args], cwd=self.path, env=env, timeout=timeout
        )

    def _to_git_error(self, args: list[str], error: ProcessError) -> GitError:
        label = " ".join(a for a in args if not a.startswith("--"))
        return GitError(
            command=label or "git",
            message=error.output or str(error),
            returncode=error.returncode,
        )

    def _parse_status(self, output: str) -> GitStatus:
        """Parse NUL-separated ``XY path`` records.

        A rename or copy record is followed by one extra field holding the
        source path.
        """
        fields = output.split("\0")
        entries: list[StatusEntry] = []
        i = 0
        while i < len(fields):
            record = fields[i]
            i += 1
            if len(record) < 4:
                continue
            xy, path = record[:2], record[3:]
            orig_path = None
            if ("R" in xy or "C" in xy) and i < len(fields):
                orig_path = fields[i]
                i += 1
            entries.append(StatusEntry(xy=xy, path=path, orig_path=orig_path))
        return GitStatus(entries=tuple(entries))
