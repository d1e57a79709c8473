from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

from cdev.core.result import Err, Ok, Result
from cdev.core.structured import as_obj_list, as_str_dict, get_str, get_table
from cdev.platform.http import HttpError
from cdev.services.publish.errors import PublishError
from cdev.services.publish.model import HostType, Transport


@dataclass(frozen=True, slots=True)
class HostUser:
    login: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class HostOrg:
    login: str


@dataclass(frozen=True, slots=True)
class HostRepo:
    owner: str
    name: str
    full_name: str
    html_url: str | None = None


class HostClient(Protocol):
    """Capabilities the publish engine needs from a hosted git provider.

    Lookups distinguish "absent" (Ok(None)) from "request failed" (Err) so a
    transient outage is never treated as a missing repository.
    """

    host_type: HostType

    @property
    def ssh_target(self) -> str:
        """``git@<host>``, used to probe ssh access."""
        ...

    @property
    def token_portal_url(self) -> str: ...

    @property
    def ssh_key_portal_url(self) -> str: ...

    @property
    def ssh_key_help_url(self) -> str: ...

    def set_token(self, token: str) -> None: ...

    def get_user(self) -> Result[HostUser, PublishError]: ...

    def get_orgs(self, login: str) -> Result[list[HostOrg], PublishError]: ...

    def get_repo(self, owner: str, name: str) -> Result[HostRepo | None, PublishError]: ...

    def create_repo(self, name: str) -> Result[HostRepo, PublishError]: ...

    def create_org_repo(self, name: str, org: str) -> Result[HostRepo, PublishError]: ...

    def get_remote_url(self, login: str, name: str, transport: Transport, token: str) -> str: ...


def remote_url(host: str, login: str, name: str, transport: Transport, token: str) -> str:
    """Clone URL for ``login/name``; https embeds the credentials, ssh never does."""
    if transport == "ssh":
        return f"git@{host}:{login}/{name}.git"
    user = quote(login, safe="")
    secret = quote(token, safe="")
    return f"https://{user}:{secret}@{host}/{login}/{name}.git"


def lookup_error(host: HostType, what: str, error: HttpError) -> PublishError:
    if error.is_auth_failure:
        return PublishError(
            kind="auth",
            message=f"{host.label} rejected the access token while fetching {what}",
            hint="Re-run with --refresh-token to enter a new token.",
        )
    return PublishError(
        kind="network",
        message=f"could not fetch {what} from {host.label}",
        hint=str(error),
    )


def create_error(host: HostType, full_name: str, error: HttpError | str) -> PublishError:
    return PublishError(
        kind="repo_create",
        message=f"could not create repository {full_name} on {host.label}",
        hint=str(error),
    )


def parse_user(host: HostType, payload: object) -> Result[HostUser, PublishError]:
    data = as_str_dict(payload)
    login = get_str(data, "login") if data is not None else None
    if data is None or login is None:
        return Err(
            PublishError(
                kind="host_init_failed",
                message=f"unexpected user payload from {host.label}",
            )
        )
    return Ok(HostUser(login=login, name=get_str(data, "name")))


def parse_orgs(host: HostType, payload: object) -> Result[list[HostOrg], PublishError]:
    items = as_obj_list(payload)
    if items is None:
        return Err(
            PublishError(
                kind="host_init_failed",
                message=f"unexpected organization payload from {host.label}",
            )
        )
    orgs: list[HostOrg] = []
    for item in items:
        d = as_str_dict(item)
        login = get_str(d, "login") if d is not None else None
        if login is not None:
            orgs.append(HostOrg(login=login))
    return Ok(orgs)


def parse_repo(payload: object) -> HostRepo | None:
    data = as_str_dict(payload)
    if data is None:
        return None
    name = get_str(data, "name")
    owner_table = get_table(data, "owner") or {}
    owner = get_str(owner_table, "login")
    full_name = get_str(data, "full_name")
    if name is None:
        return None
    if owner is None and full_name is not None and "/" in full_name:
        owner = full_name.split("/", 1)[0]
    if owner is None:
        return None
    return HostRepo(
        owner=owner,
        name=name,
        full_name=full_name or f"{owner}/{name}",
        html_url=get_str(data, "html_url"),
    )
