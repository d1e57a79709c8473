"""Working tree reconciliation.

``reconcile`` turns whatever is in the working tree into exactly one commit
(or nothing, when the tree is clean). ``sync_dev_branch`` then brings the dev
branch up to date with the remote and pushes it.
"""

from __future__ import annotations

from dataclasses import dataclass

from cdev.core.result import Err, Ok, Result
from cdev.git.repository import GitError, GitStatus, Repository
from cdev.output.console import ConsoleProtocol, Style
from cdev.services.publish.config import MASTER_BRANCH, REMOTE_NAME
from cdev.services.publish.errors import PublishError, git_failed, repo_state
from cdev.services.publish.prompts import Prompter
from cdev.services.publish.version import RemoteRefInventory


@dataclass(frozen=True, slots=True)
class CommitOutcome:
    committed: bool
    message: str | None = None
    paths: tuple[str, ...] = ()


def _conflict_error(status: GitStatus) -> PublishError:
    paths = ", ".join(e.path for e in status.conflicted)
    return repo_state(
        f"unresolved merge conflicts: {paths}",
        hint="Resolve the conflicts, commit, and run publish again.",
    )


class CommitCoordinator:
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

    def reconcile(self) -> Result[CommitOutcome, PublishError]:
        stash = self._check_stash()
        if isinstance(stash, Err):
            return stash

        status = self.check_conflicts()
        if isinstance(status, Err):
            return status

        if status.value.is_clean:
            self._console.print("working tree clean, nothing to commit", Style.DIM)
            return Ok(CommitOutcome(committed=False))

        paths = status.value.changed_paths()
        for entry in status.value.changed:
            self._console.print(f"  {entry.xy.replace(' ', '.')} {' -> '.join(entry.paths)}", Style.DIM)

        added = self._repo.add(paths)
        if isinstance(added, Err):
            return Err(git_failed(added.error))

        message = self._ask_message()
        committed = self._repo.commit(message)
        if isinstance(committed, Err):
            return Err(git_failed(committed.error))

        self._console.success(f"committed {len(paths)} path(s): {message}")
        return Ok(CommitOutcome(committed=True, message=message, paths=tuple(paths)))

    def check_conflicts(self) -> Result[GitStatus, PublishError]:
        status = self._repo.status()
        if isinstance(status, Err):
            return Err(git_failed(status.error))
        if status.value.conflicted:
            return Err(_conflict_error(status.value))
        return Ok(status.value)

    def sync_dev_branch(
        self,
        branch: str,
        inventory: RemoteRefInventory,
    ) -> Result[None, PublishError]:
        """Check out ``branch``, merge remote master and branch, push it."""
        checked_out = self._checkout(branch)
        if isinstance(checked_out, Err):
            return checked_out

        if inventory.has_master:
            pulled = self._pull(MASTER_BRANCH)
            if isinstance(pulled, Err):
                return pulled
        if inventory.has_branch(branch):
            pulled = self._pull(branch)
            if isinstance(pulled, Err):
                return pulled

        pushed = self._repo.push(REMOTE_NAME, branch, set_upstream=True)
        if isinstance(pushed, Err):
            return Err(git_failed(pushed.error, message=f"could not push {branch}"))
        self._console.success(f"pushed {branch}")
        return Ok(None)

    def _check_stash(self) -> Result[None, PublishError]:
        stashes = self._repo.stash_list()
        if isinstance(stashes, Err):
            return Err(git_failed(stashes.error))
        if not stashes.value:
            return Ok(None)

        for entry in stashes.value:
            self._console.print(f"  {entry}", Style.DIM)
        if not self._prompter.confirm(
            f"Found {len(stashes.value)} stash entr{'y' if len(stashes.value) == 1 else 'ies'}; "
            "pop the latest before publishing?",
            default=False,
        ):
            self._console.info("stash left untouched")
            return Ok(None)

        popped = self._repo.stash_pop()
        if isinstance(popped, Err):
            return Err(self._after_merge_failure(popped.error, "could not pop stash"))
        self._console.success("stash popped")
        return Ok(None)

    def _ask_message(self) -> str:
        while True:
            message = self._prompter.text("Commit message").strip()
            if message:
                return message
            self._console.warning("commit message cannot be empty")

    def _checkout(self, branch: str) -> Result[None, PublishError]:
        current = self._repo.current_branch()
        if isinstance(current, Ok) and current.value == branch:
            return Ok(None)

        locals_ = self._repo.local_branches()
        if isinstance(locals_, Err):
            return Err(git_failed(locals_.error))
        exists = branch in locals_.value
        result = self._repo.checkout(branch, create=not exists)
        if isinstance(result, Err):
            return Err(git_failed(result.error, message=f"could not check out {branch}"))
        self._console.success(f"switched to {branch}")
        return Ok(None)

    def _pull(self, branch: str) -> Result[None, PublishError]:
        pulled = self._repo.pull(REMOTE_NAME, branch)
        if isinstance(pulled, Err):
            return Err(self._after_merge_failure(pulled.error, f"could not pull {branch}"))
        status = self.check_conflicts()
        if isinstance(status, Err):
            return status
        self._console.success(f"merged {REMOTE_NAME}/{branch}")
        return Ok(None)

    def _after_merge_failure(self, error: GitError, message: str) -> PublishError:
        """A failed pull/pop that left conflicts is a repo_state error."""
        status = self._repo.status()
        if isinstance(status, Ok) and status.value.conflicted:
            return _conflict_error(status.value)
        return git_failed(error, message=message)
