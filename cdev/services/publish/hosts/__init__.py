"""Hosted git providers.

Providers form a closed registry keyed by ``HostType``. Adding a host means
adding a leaf class and one registry entry; the engine never names a concrete
provider.
"""

from __future__ import annotations

from collections.abc import Callable

from cdev.platform.http import HttpClient
from cdev.services.publish.hosts.base import HostClient, HostOrg, HostRepo, HostUser
from cdev.services.publish.hosts.gitee import GiteeClient
from cdev.services.publish.hosts.github import GithubClient
from cdev.services.publish.model import HostType

HOST_CLIENTS: dict[HostType, Callable[[HttpClient], HostClient]] = {
    HostType.GITHUB: GithubClient,
    HostType.GITEE: GiteeClient,
}


def create_host_client(host_type: HostType, http: HttpClient) -> HostClient:
    return HOST_CLIENTS[host_type](http)


__all__ = [
    "HOST_CLIENTS",
    "GiteeClient",
    "GithubClient",
    "HostClient",
    "HostOrg",
    "HostRepo",
    "HostUser",
    "create_host_client",
]
