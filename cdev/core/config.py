"""Typed configuration loading and access.

The optional ``config.toml`` lives in the CLI home directory (see
``cdev.platform.paths.cli_home``). Every key has a default, so a missing file
yields ``Config()``:

    [relay]
    url = "http://cjp.clidev.xyz:7001"
    connect_timeout_seconds = 5
    build_timeout_seconds = 300

    [publish]
    build_cmd = "npm run build"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_float, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "PublishConfig",
    "RelayConfig",
    "load_config",
    "DEFAULT_RELAY_URL",
    "DEFAULT_CONNECT_TIMEOUT_SECONDS",
    "DEFAULT_BUILD_TIMEOUT_SECONDS",
    "DEFAULT_BUILD_CMD",
]

DEFAULT_RELAY_URL = "http://cjp.clidev.xyz:7001"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_BUILD_TIMEOUT_SECONDS = 5 * 60.0
DEFAULT_BUILD_CMD = "npm run build"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Build relay endpoint and timing."""

    url: str = DEFAULT_RELAY_URL
    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    build_timeout_seconds: float = DEFAULT_BUILD_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Defaults for the publish command."""

    build_cmd: str = DEFAULT_BUILD_CMD


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    relay: RelayConfig = field(default_factory=RelayConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        relay: StrDict = get_table(data, "relay") or {}
        publish: StrDict = get_table(data, "publish") or {}

        return cls(
            relay=RelayConfig(
                url=(get_str(relay, "url") or DEFAULT_RELAY_URL).rstrip("/"),
                connect_timeout_seconds=_positive(
                    get_float(relay, "connect_timeout_seconds"),
                    DEFAULT_CONNECT_TIMEOUT_SECONDS,
                ),
                build_timeout_seconds=_positive(
                    get_float(relay, "build_timeout_seconds"),
                    DEFAULT_BUILD_TIMEOUT_SECONDS,
                ),
            ),
            publish=PublishConfig(
                build_cmd=get_str(publish, "build_cmd") or DEFAULT_BUILD_CMD,
            ),
        )


def _positive(value: float | None, default: float) -> float:
    if value is None or value <= 0:
        return default
    return value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load configuration from ``path``.

    A missing file is not an error: defaults are returned.
    """
    if not path.exists():
        return Ok(Config())

    parsed = _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed
    return Ok(Config.from_dict(parsed.value))
