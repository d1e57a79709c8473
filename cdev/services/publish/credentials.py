"""Per-user credential cache.

One plain-text file per logical key, under ``<cli_home>/.git/``:

    .git_server   host type (github/gitee)
    .git_token    personal access token
    .git_own      owner kind (user/org)
    .git_login    owner login
    .git_publish  publish target

Values are written on first prompt and replaced only when the caller asks for a
refresh. Nothing is encrypted; the token file gets the OS default permissions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from cdev.core.result import Err, Ok, Result
from cdev.platform.files import atomic_write_text, read_text_or_none
from cdev.services.publish.config import CREDENTIALS_DIR
from cdev.services.publish.errors import PublishError

__all__ = [
    "CredentialCache",
    "CredentialKey",
    "FileCredentialCache",
    "MemoryCredentialCache",
]


class CredentialKey(StrEnum):
    HOST_TYPE = ".git_server"
    TOKEN = ".git_token"
    OWNER_KIND = ".git_own"
    LOGIN = ".git_login"
    PUBLISH_TARGET = ".git_publish"


class CredentialCache(Protocol):
    def ensure(self) -> Result[None, PublishError]:
        """Make sure the backing storage is usable."""
        ...

    def get(self, key: CredentialKey) -> str | None:
        """Cached value, or None when absent or blank."""
        ...

    def set(self, key: CredentialKey, value: str) -> Result[None, PublishError]:
        ...

    def location(self, key: CredentialKey) -> str:
        """Where ``key`` is stored (for user messages)."""
        ...


class FileCredentialCache:
    def __init__(self, cli_home: Path) -> None:
        self.root = cli_home / CREDENTIALS_DIR

    def ensure(self) -> Result[None, PublishError]:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(
                PublishError(
                    kind="home_dir_unavailable",
                    message=f"could not create credential directory {self.root}",
                    hint=str(e),
                )
            )
        if not self.root.is_dir():
            return Err(
                PublishError(
                    kind="home_dir_unavailable",
                    message=f"credential directory unavailable: {self.root}",
                    hint="Set CLI_HOME_PATH to a writable directory.",
                )
            )
        return Ok(None)

    def get(self, key: CredentialKey) -> str | None:
        try:
            raw = read_text_or_none(self._path(key))
        except OSError:
            return None
        if raw is None:
            return None
        return raw.strip() or None

    def set(self, key: CredentialKey, value: str) -> Result[None, PublishError]:
        path = self._path(key)
        try:
            atomic_write_text(path, value)
        except OSError as e:
            return Err(
                PublishError(
                    kind="home_dir_unavailable",
                    message=f"could not write {path}",
                    hint=str(e),
                )
            )
        return Ok(None)

    def location(self, key: CredentialKey) -> str:
        return str(self._path(key))

    def _path(self, key: CredentialKey) -> Path:
        return self.root / key.value


def _empty_values() -> dict[CredentialKey, str]:
    return {}


@dataclass
class MemoryCredentialCache:
    """In-memory cache for tests and dry runs."""

    values: dict[CredentialKey, str] = field(default_factory=_empty_values)
    writes: list[CredentialKey] = field(default_factory=list)

    def ensure(self) -> Result[None, PublishError]:
        return Ok(None)

    def get(self, key: CredentialKey) -> str | None:
        value = self.values.get(key)
        if value is None:
            return None
        return value.strip() or None

    def set(self, key: CredentialKey, value: str) -> Result[None, PublishError]:
        self.values[key] = value
        self.writes.append(key)
        return Ok(None)

    def location(self, key: CredentialKey) -> str:
        return f"memory:{key.value}"
