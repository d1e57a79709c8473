"""Publish engine: the three resumable phases of a release.

    prepare()  provision the hosted repository and wire up the working copy
    commit()   pin the dev branch, commit local work, sync and push the branch
    publish()  hand the branch to the build relay; production builds are then
               tagged and folded into master

Each phase re-derives what it needs from disk and the remote, so calling it
again after a failure (or in a new process) picks up where the last run
stopped.
"""

from __future__ import annotations

from cdev.core.config import Config
from cdev.core.result import Err, Ok, Result
from cdev.git.repository import Repository
from cdev.output.console import ConsoleProtocol
from cdev.platform.http import HttpClient
from cdev.platform.paths import ssh_dir
from cdev.services.publish.cloudbuild import (
    BuildRequest,
    ChannelFactory,
    RemoteBuildHandoff,
    check_build_command,
    confirm_overwrite,
    socketio_channel,
)
from cdev.services.publish.commit import CommitCoordinator
from cdev.services.publish.config import MASTER_BRANCH, PUBLISH_TARGETS, REMOTE_NAME
from cdev.services.publish.credentials import CredentialCache, CredentialKey
from cdev.services.publish.errors import PublishError, git_failed, repo_state
from cdev.services.publish.finalize import ReleaseFinalizer
from cdev.services.publish.hosts import create_host_client
from cdev.services.publish.model import PublishOptions, RepoContext
from cdev.services.publish.prompts import Choice, Prompter
from cdev.services.publish.provision import HostFactory, RepoProvisioner
from cdev.services.publish.ssh import OpenSshAccess, SshAccess
from cdev.services.publish.version import BranchVersionResolver, fetch_inventory


class PublishEngine:
    def __init__(
        self,
        ctx: RepoContext,
        options: PublishOptions,
        *,
        cache: CredentialCache,
        prompter: Prompter,
        console: ConsoleProtocol,
        http: HttpClient,
        config: Config,
        repo: Repository | None = None,
        ssh: SshAccess | None = None,
        channel_factory: ChannelFactory = socketio_channel,
        host_factory: HostFactory = create_host_client,
    ) -> None:
        self.ctx = ctx
        self._options = options
        self._cache = cache
        self._prompter = prompter
        self._console = console
        self._http = http
        self._config = config
        self._repo = repo or Repository(
            ctx.source_dir, on_command=lambda args: console.debug(f"git {' '.join(args)}")
        )
        self._ssh = ssh or OpenSshAccess(ssh_dir())
        self._channel_factory = channel_factory
        self._host_factory = host_factory

        self._committer = CommitCoordinator(repo=self._repo, prompter=prompter, console=console)

    # -- phases ----------------------------------------------------------

    def prepare(self) -> Result[None, PublishError]:
        self._console.header("Preparing repository")
        provisioner = RepoProvisioner(
            repo=self._repo,
            cache=self._cache,
            http=self._http,
            prompter=self._prompter,
            console=self._console,
            ssh=self._ssh,
            options=self._options,
            host_factory=self._host_factory,
        )
        report = provisioner.ensure(self.ctx)
        if isinstance(report, Err):
            return report

        target = self._resolve_publish_target()
        if isinstance(target, Err):
            return target

        if report.value.initialized or not self._repo.has_commits():
            return self._initial_commit()
        return Ok(None)

    def commit(self) -> Result[None, PublishError]:
        self._console.header("Committing")
        resolver = BranchVersionResolver(
            repo=self._repo, prompter=self._prompter, console=self._console
        )
        branch = resolver.resolve(self.ctx)
        if isinstance(branch, Err):
            return branch

        outcome = self._committer.reconcile()
        if isinstance(outcome, Err):
            return outcome

        inventory = fetch_inventory(self._repo)
        if isinstance(inventory, Err):
            return inventory
        return self._committer.sync_dev_branch(branch.value, inventory.value)

    def publish(self) -> Result[None, PublishError]:
        self._console.header("Publishing")
        ctx = self.ctx
        branch = ctx.branch
        if branch is None:
            resolver = BranchVersionResolver(
                repo=self._repo, prompter=self._prompter, console=self._console
            )
            pinned = resolver.resolve(ctx)
            if isinstance(pinned, Err):
                return pinned
            branch = pinned.value

        build_cmd = check_build_command(self._options.build_cmd)
        if isinstance(build_cmd, Err):
            return build_cmd

        if self._options.production:
            confirmed = confirm_overwrite(
                http=self._http,
                relay_url=self._config.relay.url,
                name=ctx.name,
                prompter=self._prompter,
                console=self._console,
            )
            if isinstance(confirmed, Err):
                return confirmed

        remote = self._remote_url()
        if isinstance(remote, Err):
            return remote

        request = BuildRequest(
            repo=remote.value,
            name=ctx.name,
            branch=branch,
            version=ctx.resolved_version,
            build_cmd=build_cmd.value,
            production=self._options.production,
            publish_target=ctx.publish_target or self._cache.get(CredentialKey.PUBLISH_TARGET),
        )
        built = self._run_build(request)
        if isinstance(built, Err):
            return built

        if not self._options.production:
            return Ok(None)

        finalizer = ReleaseFinalizer(repo=self._repo, console=self._console)
        finalized = finalizer.run(version=ctx.resolved_version, branch=branch)
        if isinstance(finalized, Err):
            return finalized
        self._console.success(f"released {ctx.name} {ctx.resolved_version}")
        return Ok(None)

    # -- helpers ---------------------------------------------------------

    def _resolve_publish_target(self) -> Result[str, PublishError]:
        key = CredentialKey.PUBLISH_TARGET
        known = {value for value, _ in PUBLISH_TARGETS}
        cached = None if self._options.refresh_publish_target else self._cache.get(key)
        if cached is not None and cached in known:
            self.ctx.publish_target = cached
            return Ok(cached)

        target = self._prompter.select(
            "Select where build artifacts are published",
            [Choice(value, label) for value, label in PUBLISH_TARGETS],
            default=PUBLISH_TARGETS[0][0],
        )
        stored = self._cache.set(key, target)
        if isinstance(stored, Err):
            return stored
        self.ctx.publish_target = target
        return Ok(target)

    def _initial_commit(self) -> Result[None, PublishError]:
        outcome = self._committer.reconcile()
        if isinstance(outcome, Err):
            return outcome

        inventory = fetch_inventory(self._repo)
        if isinstance(inventory, Err):
            return inventory

        if inventory.value.has_master:
            pulled = self._repo.pull(REMOTE_NAME, MASTER_BRANCH, allow_unrelated_histories=True)
            if isinstance(pulled, Err):
                conflicts = self._committer.check_conflicts()
                if isinstance(conflicts, Err):
                    return conflicts
                return Err(git_failed(pulled.error, message=f"could not pull {MASTER_BRANCH}"))
            self._console.success(f"merged {REMOTE_NAME}/{MASTER_BRANCH}")
            return Ok(None)

        if not self._repo.has_commits():
            return Err(repo_state("nothing to commit in a fresh repository"))
        pushed = self._repo.push(REMOTE_NAME, MASTER_BRANCH, set_upstream=True)
        if isinstance(pushed, Err):
            return Err(git_failed(pushed.error, message=f"could not push {MASTER_BRANCH}"))
        self._console.success(f"pushed {MASTER_BRANCH}")
        return Ok(None)

    def _remote_url(self) -> Result[str, PublishError]:
        if self.ctx.remote_url:
            return Ok(self.ctx.remote_url)
        remotes = self._repo.remotes()
        if isinstance(remotes, Err):
            return Err(git_failed(remotes.error))
        url = remotes.value.get(REMOTE_NAME)
        if url is None:
            return Err(
                repo_state(
                    f"no '{REMOTE_NAME}' remote configured",
                    hint="Run the prepare phase first.",
                )
            )
        self.ctx.remote_url = url
        return Ok(url)

    def _run_build(self, request: BuildRequest) -> Result[None, PublishError]:
        handoff = RemoteBuildHandoff(
            request=request,
            config=self._config.relay,
            console=self._console,
            channel=self._channel_factory(self._config.relay),
        )
        connected = handoff.connect()
        if isinstance(connected, Err):
            return connected

        built = handoff.build()
        if isinstance(built, Err):
            return built
        if not built.value:
            action = handoff.session.failed_action
            return Err(
                PublishError(
                    kind="build_failed",
                    message=f"remote build failed: {action or 'unknown action'}",
                    hint="See the relay output above.",
                    action=action,
                )
            )
        self._console.success(f"remote build of {request.branch} succeeded")
        return Ok(None)
