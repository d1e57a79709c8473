"""User-level directory resolution.

The CLI keeps its per-user state (credential cache, config.toml) under a
single home directory: ``$CLI_HOME_PATH`` when set, otherwise ``~/.cdev``.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

__all__ = [
    "CLI_HOME_ENV",
    "DEFAULT_CLI_HOME",
    "cli_home",
    "clear_caches",
    "home",
    "ssh_dir",
]

CLI_HOME_ENV = "CLI_HOME_PATH"
DEFAULT_CLI_HOME = ".cdev"


@lru_cache(maxsize=1)
def home() -> Path:
    """Get the user's home directory.

    HOME (or USERPROFILE on Windows) wins over Path.home() so CI and
    containers can redirect it.
    """
    env_name = "USERPROFILE" if os.name == "nt" else "HOME"
    home_env = os.environ.get(env_name)
    if home_env:
        return Path(home_env)
    return Path.home()


@lru_cache(maxsize=1)
def cli_home() -> Path:
    """Directory holding cdev's per-user state."""
    override = os.environ.get(CLI_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return home() / DEFAULT_CLI_HOME


def ssh_dir() -> Path:
    """The user's OpenSSH key directory."""
    return home() / ".ssh"


def clear_caches() -> None:
    """Forget cached paths (tests change HOME/CLI_HOME_PATH)."""
    home.cache_clear()
    cli_home.cache_clear()
