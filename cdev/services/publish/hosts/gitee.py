from __future__ import annotations

from cdev.core.result import Err, Ok, Result
from cdev.platform.http import HttpClient, HttpError, HttpMethod
from cdev.services.publish.errors import PublishError
from cdev.services.publish.hosts.base import (
    HostOrg,
    HostRepo,
    HostUser,
    create_error,
    lookup_error,
    parse_orgs,
    parse_repo,
    parse_user,
    remote_url,
)
from cdev.services.publish.model import HostType, Transport

API_URL = "https://gitee.com/api/v5"
WEB_HOST = "gitee.com"


class GiteeClient:
    """Gitee API v5 adapter. The token travels as the ``access_token`` parameter."""

    host_type = HostType.GITEE

    def __init__(self, http: HttpClient) -> None:
        self._http = http
        self._token = ""

    @property
    def ssh_target(self) -> str:
        return f"git@{WEB_HOST}"

    @property
    def token_portal_url(self) -> str:
        return "https://gitee.com/profile/personal_access_tokens"

    @property
    def ssh_key_portal_url(self) -> str:
        return "https://gitee.com/profile/sshkeys"

    @property
    def ssh_key_help_url(self) -> str:
        return "https://gitee.com/help/articles/4191"

    def set_token(self, token: str) -> None:
        self._token = token

    def get_user(self) -> Result[HostUser, PublishError]:
        result = self._request("GET", "/user")
        if isinstance(result, Err):
            return Err(lookup_error(self.host_type, "user info", result.error))
        return parse_user(self.host_type, result.value)

    def get_orgs(self, login: str) -> Result[list[HostOrg], PublishError]:
        result = self._request(
            "GET",
            f"/users/{login}/orgs",
            params={"page": "1", "per_page": "100"},
        )
        if isinstance(result, Err):
            return Err(lookup_error(self.host_type, "organizations", result.error))
        return parse_orgs(self.host_type, result.value)

    def get_repo(self, owner: str, name: str) -> Result[HostRepo | None, PublishError]:
        result = self._request("GET", f"/repos/{owner}/{name}")
        if isinstance(result, Err):
            if result.error.is_not_found:
                return Ok(None)
            return Err(lookup_error(self.host_type, f"repository {owner}/{name}", result.error))
        return Ok(parse_repo(result.value))

    def create_repo(self, name: str) -> Result[HostRepo, PublishError]:
        return self._create("/user/repos", name, owner_hint="(user)")

    def create_org_repo(self, name: str, org: str) -> Result[HostRepo, PublishError]:
        return self._create(f"/orgs/{org}/repos", name, owner_hint=org)

    def get_remote_url(self, login: str, name: str, transport: Transport, token: str) -> str:
        return remote_url(WEB_HOST, login, name, transport, token)

    def _create(self, path: str, name: str, *, owner_hint: str) -> Result[HostRepo, PublishError]:
        full_name = f"{owner_hint}/{name}"
        result = self._request("POST", path, body={"name": name})
        if isinstance(result, Err):
            return Err(create_error(self.host_type, full_name, result.error))
        repo = parse_repo(result.value)
        if repo is None:
            return Err(create_error(self.host_type, full_name, "unexpected response payload"))
        return Ok(repo)

    def _request(
        self,
        method: HttpMethod,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, object] | None = None,
    ) -> Result[object, HttpError]:
        query = dict(params or {})
        if self._token:
            query["access_token"] = self._token
        return self._http.request_json(method, f"{API_URL}{path}", params=query, body=body)
