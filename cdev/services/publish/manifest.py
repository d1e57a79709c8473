"""Project manifest (package.json) access.

Publishing needs ``name``, ``version`` and a ``scripts.build`` entry. The only
write is the version write-back, and it happens only when the value changes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from cdev.core.result import Err, Ok, Result
from cdev.core.structured import StrDict, as_str_dict, get_str, get_table
from cdev.platform.files import atomic_write_text
from cdev.services.publish.config import MANIFEST_FILE
from cdev.services.publish.errors import PublishError, repo_state
from cdev.services.publish.semver import parse_version


@dataclass(frozen=True, slots=True)
class ProjectManifest:
    path: Path
    name: str
    version: str
    build_script: str


def manifest_path(source_dir: Path) -> Path:
    return source_dir / MANIFEST_FILE


def _read_raw(path: Path) -> Result[StrDict, PublishError]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Err(repo_state(f"{MANIFEST_FILE} not found: {path}"))
    except OSError as e:
        return Err(repo_state(f"could not read {path}", hint=str(e)))

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(repo_state(f"invalid JSON in {path}", hint=str(e)))

    data = as_str_dict(obj)
    if data is None:
        return Err(repo_state(f"{path} must contain a JSON object"))
    return Ok(data)


def load_manifest(source_dir: Path) -> Result[ProjectManifest, PublishError]:
    path = manifest_path(source_dir)
    raw = _read_raw(path)
    if isinstance(raw, Err):
        return raw
    data = raw.value

    name = get_str(data, "name")
    version = get_str(data, "version")
    scripts = get_table(data, "scripts") or {}
    build = get_str(scripts, "build")
    if name is None or version is None or build is None:
        return Err(
            repo_state(
                f"{MANIFEST_FILE} is incomplete",
                hint="name, version and scripts.build are required",
            )
        )
    if parse_version(version) is None:
        return Err(
            repo_state(
                f"invalid version in {MANIFEST_FILE}: {version}",
                hint="expected MAJOR.MINOR.PATCH",
            )
        )
    return Ok(ProjectManifest(path=path, name=name, version=version, build_script=build))


def write_version(source_dir: Path, version: str) -> Result[bool, PublishError]:
    """Store ``version`` in the manifest; Ok(False) when it already matches."""
    path = manifest_path(source_dir)
    raw = _read_raw(path)
    if isinstance(raw, Err):
        return raw
    data = raw.value
    if get_str(data, "version") == version:
        return Ok(False)

    data["version"] = version
    try:
        atomic_write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
    except OSError as e:
        return Err(repo_state(f"could not write {path}", hint=str(e)))
    return Ok(True)
