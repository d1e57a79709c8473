"""Remote repository provisioning.

``RepoProvisioner.ensure`` makes sure that:
- the host, token and owner are known (cached, or prompted and cached),
- the remote repository exists (created when the lookup says it is absent),
- the working copy is a git repository with ``origin`` pointing at it.

Running it again on a provisioned project does no writes: the lookup finds
the repository and an existing ``.git`` skips initialization entirely.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from cdev.core.result import Err, Ok, Result
from cdev.git.repository import Repository
from cdev.output.console import ConsoleProtocol, Style
from cdev.platform.http import HttpClient
from cdev.services.publish.config import GITIGNORE_FILE, GITIGNORE_TEMPLATE, MASTER_BRANCH, REMOTE_NAME
from cdev.services.publish.credentials import CredentialCache, CredentialKey
from cdev.services.publish.errors import PublishError, git_failed
from cdev.services.publish.hosts import HostClient, HostOrg, HostRepo, HostUser, create_host_client
from cdev.services.publish.model import HostType, OwnerKind, PublishOptions, RepoContext, Transport
from cdev.services.publish.prompts import Choice, Prompter
from cdev.services.publish.ssh import SshAccess

HostFactory = Callable[[HostType, HttpClient], HostClient]


@dataclass(frozen=True, slots=True)
class ProvisionReport:
    initialized: bool
    created_repo: bool
    repo: HostRepo


class RepoProvisioner:
    def __init__(
        self,
        *,
        repo: Repository,
        cache: CredentialCache,
        http: HttpClient,
        prompter: Prompter,
        console: ConsoleProtocol,
        ssh: SshAccess,
        options: PublishOptions,
        host_factory: HostFactory = create_host_client,
    ) -> None:
        self._repo = repo
        self._cache = cache
        self._http = http
        self._prompter = prompter
        self._console = console
        self._ssh = ssh
        self._options = options
        self._host_factory = host_factory

    def ensure(self, ctx: RepoContext) -> Result[ProvisionReport, PublishError]:
        ready = self._cache.ensure()
        if isinstance(ready, Err):
            return ready

        host_type = self._resolve_host_type()
        if isinstance(host_type, Err):
            return host_type
        client = self._host_factory(host_type.value, self._http)

        token = self._resolve_token(client)
        if isinstance(token, Err):
            return token
        client.set_token(token.value)

        user = client.get_user()
        if isinstance(user, Err):
            return user
        orgs = client.get_orgs(user.value.login)
        if isinstance(orgs, Err):
            return orgs

        owner = self._resolve_owner(user.value, orgs.value)
        if isinstance(owner, Err):
            return owner
        owner_kind, login = owner.value

        ctx.host_type = host_type.value
        ctx.token = token.value
        ctx.owner_kind = owner_kind
        ctx.login = login
        self._console.success(f"{host_type.value.label} owner: {login} ({owner_kind})")

        remote = self._ensure_remote_repo(client, ctx)
        if isinstance(remote, Err):
            return remote
        hosted, created = remote.value

        gitignore = self._ensure_gitignore(ctx)
        if isinstance(gitignore, Err):
            return gitignore

        if self._repo.exists():
            self._console.debug("git repository already initialized")
            self._read_remote(ctx)
            return Ok(ProvisionReport(initialized=False, created_repo=created, repo=hosted))

        initialized = self._init_working_copy(client, ctx)
        if isinstance(initialized, Err):
            return initialized
        return Ok(ProvisionReport(initialized=True, created_repo=created, repo=hosted))

    # -- credentials -----------------------------------------------------

    def _resolve_host_type(self) -> Result[HostType, PublishError]:
        key = CredentialKey.HOST_TYPE
        cached = None if self._options.refresh_host else self._cache.get(key)
        if cached is not None:
            try:
                return Ok(HostType(cached))
            except ValueError:
                return Err(
                    PublishError(
                        kind="credential",
                        message=f"unknown git host '{cached}' in {self._cache.location(key)}",
                        hint="Re-run with --refresh-server to choose again.",
                    )
                )

        host_type = self._prompter.select(
            "Select a git host",
            [Choice(h, h.label) for h in HostType],
            default=HostType.GITHUB,
        )
        stored = self._cache.set(key, host_type.value)
        if isinstance(stored, Err):
            return stored
        return Ok(host_type)

    def _resolve_token(self, client: HostClient) -> Result[str, PublishError]:
        key = CredentialKey.TOKEN
        cached = None if self._options.refresh_token else self._cache.get(key)
        if cached is not None:
            return Ok(cached)

        self._console.info(f"create a token at {client.token_portal_url}")
        token = self._prompter.text(f"{client.host_type.label} token", secret=True).strip()
        if not token:
            return Err(
                PublishError(
                    kind="credential",
                    message=f"no {client.host_type.label} token given",
                    hint=f"Create one at {client.token_portal_url}",
                )
            )
        stored = self._cache.set(key, token)
        if isinstance(stored, Err):
            return stored
        return Ok(token)

    def _resolve_owner(
        self,
        user: HostUser,
        orgs: list[HostOrg],
    ) -> Result[tuple[OwnerKind, str], PublishError]:
        kind_key = CredentialKey.OWNER_KIND
        login_key = CredentialKey.LOGIN
        refresh = self._options.refresh_owner

        cached_kind = None if refresh else self._cache.get(kind_key)
        cached_login = None if refresh else self._cache.get(login_key)
        org_logins = [o.login for o in orgs]

        owner_kind: OwnerKind
        if not orgs:
            owner_kind = "user"
        elif cached_kind in ("user", "org"):
            owner_kind = "user" if cached_kind == "user" else "org"
        else:
            owner_kind = self._prompter.select(
                "Select the repository owner type",
                [Choice[OwnerKind]("user", f"user ({user.login})"), Choice[OwnerKind]("org", "organization")],
                default="user",
            )

        if owner_kind == "user":
            login = user.login
        elif cached_login is not None and cached_login in org_logins:
            login = cached_login
        else:
            login = self._prompter.select(
                "Select an organization",
                [Choice(name, name) for name in org_logins],
                default=org_logins[0],
            )

        if cached_kind != owner_kind:
            stored = self._cache.set(kind_key, owner_kind)
            if isinstance(stored, Err):
                return stored
        if cached_login != login:
            stored = self._cache.set(login_key, login)
            if isinstance(stored, Err):
                return stored
        return Ok((owner_kind, login))

    # -- remote repository -----------------------------------------------

    def _ensure_remote_repo(
        self,
        client: HostClient,
        ctx: RepoContext,
    ) -> Result[tuple[HostRepo, bool], PublishError]:
        assert ctx.login is not None
        existing = client.get_repo(ctx.login, ctx.name)
        if isinstance(existing, Err):
            return existing
        if existing.value is not None:
            self._console.debug(f"remote repository {existing.value.full_name} found")
            return Ok((existing.value, False))

        if ctx.owner_kind == "org":
            created = client.create_org_repo(ctx.name, ctx.login)
        else:
            created = client.create_repo(ctx.name)
        if isinstance(created, Err):
            return created
        self._console.success(f"created remote repository {created.value.full_name}")
        return Ok((created.value, True))

    # -- working copy ----------------------------------------------------

    def _ensure_gitignore(self, ctx: RepoContext) -> Result[None, PublishError]:
        path = ctx.source_dir / GITIGNORE_FILE
        if path.exists():
            return Ok(None)
        try:
            path.write_text(GITIGNORE_TEMPLATE, encoding="utf-8")
        except OSError as e:
            return Err(
                PublishError(kind="repo_state", message=f"could not write {path}", hint=str(e))
            )
        self._console.success(f"wrote {GITIGNORE_FILE}")
        return Ok(None)

    def _read_remote(self, ctx: RepoContext) -> None:
        remotes = self._repo.remotes()
        if isinstance(remotes, Err):
            return
        url = remotes.value.get(REMOTE_NAME)
        if url is None:
            return
        ctx.remote_url = url
        ctx.transport = "ssh" if url.startswith("git@") else "https"

    def _init_working_copy(self, client: HostClient, ctx: RepoContext) -> Result[None, PublishError]:
        assert ctx.login is not None and ctx.token is not None
        transport = self._prompter.select(
            "Select the git transport",
            [Choice[Transport]("ssh", "ssh"), Choice[Transport]("https", "https (token in remote URL)")],
            default="ssh",
        )
        if transport == "ssh":
            ready = self._ensure_ssh(client)
            if isinstance(ready, Err):
                return ready

        initialized = self._repo.init(initial_branch=MASTER_BRANCH)
        if isinstance(initialized, Err):
            return Err(git_failed(initialized.error, message="git init failed"))
        self._console.success("initialized git repository")

        url = client.get_remote_url(ctx.login, ctx.name, transport, ctx.token)
        ctx.remote_url = url
        ctx.transport = transport

        remotes = self._repo.remotes()
        if isinstance(remotes, Err):
            return Err(git_failed(remotes.error))
        if REMOTE_NAME not in remotes.value:
            added = self._repo.add_remote(REMOTE_NAME, url)
            if isinstance(added, Err):
                return Err(git_failed(added.error, message=f"could not add remote {REMOTE_NAME}"))
            self._console.success(f"added remote {REMOTE_NAME}")
        return Ok(None)

    def _ensure_ssh(self, client: HostClient) -> Result[None, PublishError]:
        key = self._ssh.ensure_key()
        if isinstance(key, Err):
            return key
        if key.value.generated:
            self._console.success(f"generated ssh key {key.value.private_path}")

        self._console.print(key.value.public_key, Style.INFO)
        self._console.info(f"add this public key at {client.ssh_key_portal_url}")
        self._prompter.confirm("Has the public key been added?", default=True)

        probed = self._ssh.probe(client.ssh_target)
        if isinstance(probed, Err):
            return Err(
                PublishError(
                    kind="ssh_unavailable",
                    message=probed.error.message,
                    hint=f"See {client.ssh_key_help_url} (details: {probed.error.hint or 'none'})",
                )
            )
        self._console.success(f"ssh access to {client.ssh_target} verified")
        return Ok(None)
