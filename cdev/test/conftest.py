"""Shared fixtures: an isolated git identity and a working copy wired to a
bare repository acting as ``origin``."""

from __future__ import annotations

import json
import shutil
import subprocess
from collections.abc import Iterator
from pathlib import Path

import pytest

from cdev.git.repository import Repository
from cdev.platform.paths import clear_caches


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout


def write_manifest(root: Path, *, name: str = "demo-app", version: str = "1.0.0") -> Path:
    path = root / "package.json"
    data = {"name": name, "version": version, "scripts": {"build": "vite build"}}
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Isolated HOME and git identity; skips when git is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("CLI_HOME_PATH", raising=False)
    clear_caches()
    yield home
    clear_caches()


@pytest.fixture
def bare_remote(tmp_path: Path, git_env: Path) -> Path:
    path = tmp_path / "remote.git"
    git(tmp_path, "init", "--bare", str(path))
    return path


@pytest.fixture
def work_repo(tmp_path: Path, bare_remote: Path) -> Repository:
    """Working copy with one commit on master, pushed to ``origin``."""
    path = tmp_path / "work"
    path.mkdir()
    git(path, "init", "--initial-branch=master")
    git(path, "remote", "add", "origin", str(bare_remote))
    write_manifest(path)
    git(path, "add", "-A")
    git(path, "commit", "-m", "initial")
    git(path, "push", "-u", "origin", "master")
    return Repository(path)
