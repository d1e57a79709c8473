"""Release finalization state machine.

    tag_pending -> tag_created -> merged_to_master -> pushed_master
        -> dev_branch_deleted_local -> dev_branch_deleted_remote -> done

Every transition is idempotent, so a failed run is recovered by running the
machine again from ``tag_pending``. The release tag is deleted and recreated
rather than skipped, so it always points at the commit being released. If the
push of the new tag fails after the remote delete, the remote has no tag for
that version until the next run.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum

from cdev.core.result import Err, Ok, Result
from cdev.git.repository import Repository
from cdev.output.console import ConsoleProtocol
from cdev.services.publish.config import MASTER_BRANCH, REMOTE_NAME, release_tag
from cdev.services.publish.errors import PublishError, git_failed
from cdev.services.publish.fsm import FINISH, StepHandler, StepOutcome, advance, run_state_machine
from cdev.services.publish.version import fetch_inventory


class FinalizeStep(StrEnum):
    TAG_PENDING = "tag_pending"
    TAG_CREATED = "tag_created"
    MERGED_TO_MASTER = "merged_to_master"
    PUSHED_MASTER = "pushed_master"
    DEV_BRANCH_DELETED_LOCAL = "dev_branch_deleted_local"
    DEV_BRANCH_DELETED_REMOTE = "dev_branch_deleted_remote"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class FinalizeState:
    step: FinalizeStep
    version: str
    branch: str

    @property
    def tag(self) -> str:
        return release_tag(self.version)


class ReleaseFinalizer:
    def __init__(self, *, repo: Repository, console: ConsoleProtocol) -> None:
        self._repo = repo
        self._console = console

    def run(self, *, version: str, branch: str) -> Result[FinalizeState, PublishError]:
        handlers: dict[str, StepHandler[FinalizeState]] = {
            FinalizeStep.TAG_PENDING: self._create_tag,
            FinalizeStep.TAG_CREATED: self._merge_to_master,
            FinalizeStep.MERGED_TO_MASTER: self._push_master,
            FinalizeStep.PUSHED_MASTER: self._delete_local_branch,
            FinalizeStep.DEV_BRANCH_DELETED_LOCAL: self._delete_remote_branch,
            FinalizeStep.DEV_BRANCH_DELETED_REMOTE: self._done,
            FinalizeStep.DONE: lambda _: Ok(FINISH),
        }
        return run_state_machine(
            initial_state=FinalizeState(step=FinalizeStep.TAG_PENDING, version=version, branch=branch),
            get_step=lambda s: s.step,
            handlers=handlers,
            on_advance=lambda s: self._console.debug(f"finalize: {s.step}"),
        )

    def _create_tag(self, s: FinalizeState) -> Result[StepOutcome[FinalizeState], PublishError]:
        # The tag goes on the dev branch tip while it still exists locally.
        branches = self._repo.local_branches()
        if isinstance(branches, Err):
            return Err(git_failed(branches.error))
        if s.branch in branches.value:
            current = self._repo.current_branch()
            if not (isinstance(current, Ok) and current.value == s.branch):
                checked_out = self._repo.checkout(s.branch)
                if isinstance(checked_out, Err):
                    return Err(git_failed(checked_out.error, message=f"could not check out {s.branch}"))

        inventory = fetch_inventory(self._repo)
        if isinstance(inventory, Err):
            return inventory

        if inventory.value.has_tag(s.tag):
            deleted = self._repo.delete_remote_ref(REMOTE_NAME, f"refs/tags/{s.tag}")
            if isinstance(deleted, Err):
                return Err(git_failed(deleted.error, message=f"could not delete remote tag {s.tag}"))
            self._console.info(f"deleted remote tag {s.tag}")

        local_tags = self._repo.local_tags()
        if isinstance(local_tags, Err):
            return Err(git_failed(local_tags.error))
        if s.tag in local_tags.value:
            deleted = self._repo.delete_tag(s.tag)
            if isinstance(deleted, Err):
                return Err(git_failed(deleted.error, message=f"could not delete local tag {s.tag}"))
            self._console.info(f"deleted local tag {s.tag}")

        created = self._repo.add_tag(s.tag, f"release {s.version}")
        if isinstance(created, Err):
            return Err(git_failed(created.error, message=f"could not create tag {s.tag}"))
        pushed = self._repo.push(REMOTE_NAME, f"refs/tags/{s.tag}")
        if isinstance(pushed, Err):
            return Err(git_failed(pushed.error, message=f"could not push tag {s.tag}"))

        self._console.success(f"tag {s.tag} pushed")
        return Ok(advance(replace(s, step=FinalizeStep.TAG_CREATED)))

    def _merge_to_master(self, s: FinalizeState) -> Result[StepOutcome[FinalizeState], PublishError]:
        branches = self._repo.local_branches()
        if isinstance(branches, Err):
            return Err(git_failed(branches.error))

        checked_out = self._repo.checkout(MASTER_BRANCH, create=MASTER_BRANCH not in branches.value)
        if isinstance(checked_out, Err):
            return Err(git_failed(checked_out.error, message=f"could not check out {MASTER_BRANCH}"))

        inventory = fetch_inventory(self._repo)
        if isinstance(inventory, Err):
            return inventory
        if inventory.value.has_master:
            pulled = self._repo.pull(REMOTE_NAME, MASTER_BRANCH)
            if isinstance(pulled, Err):
                return Err(git_failed(pulled.error, message=f"could not pull {MASTER_BRANCH}"))

        if s.branch in branches.value:
            merged = self._repo.merge(s.branch)
            if isinstance(merged, Err):
                return Err(
                    PublishError(
                        kind="repo_state",
                        message=f"could not merge {s.branch} into {MASTER_BRANCH}",
                        hint=merged.error.message or None,
                    )
                )
            self._console.success(f"merged {s.branch} into {MASTER_BRANCH}")

        return Ok(advance(replace(s, step=FinalizeStep.MERGED_TO_MASTER)))

    def _push_master(self, s: FinalizeState) -> Result[StepOutcome[FinalizeState], PublishError]:
        pushed = self._repo.push(REMOTE_NAME, MASTER_BRANCH, set_upstream=True)
        if isinstance(pushed, Err):
            return Err(git_failed(pushed.error, message=f"could not push {MASTER_BRANCH}"))
        self._console.success(f"pushed {MASTER_BRANCH}")
        return Ok(advance(replace(s, step=FinalizeStep.PUSHED_MASTER)))

    def _delete_local_branch(
        self, s: FinalizeState
    ) -> Result[StepOutcome[FinalizeState], PublishError]:
        branches = self._repo.local_branches()
        if isinstance(branches, Err):
            return Err(git_failed(branches.error))
        if s.branch in branches.value:
            deleted = self._repo.delete_branch(s.branch)
            if isinstance(deleted, Err):
                return Err(git_failed(deleted.error, message=f"could not delete {s.branch}"))
            self._console.success(f"deleted local branch {s.branch}")
        return Ok(advance(replace(s, step=FinalizeStep.DEV_BRANCH_DELETED_LOCAL)))

    def _delete_remote_branch(
        self, s: FinalizeState
    ) -> Result[StepOutcome[FinalizeState], PublishError]:
        inventory = fetch_inventory(self._repo)
        if isinstance(inventory, Err):
            return inventory
        if inventory.value.has_branch(s.branch):
            deleted = self._repo.delete_remote_ref(REMOTE_NAME, s.branch)
            if isinstance(deleted, Err):
                return Err(
                    git_failed(deleted.error, message=f"could not delete remote branch {s.branch}")
                )
            self._console.success(f"deleted remote branch {s.branch}")
        return Ok(advance(replace(s, step=FinalizeStep.DEV_BRANCH_DELETED_REMOTE)))

    def _done(self, s: FinalizeState) -> Result[StepOutcome[FinalizeState], PublishError]:
        return Ok(advance(replace(s, step=FinalizeStep.DONE)))
