"""Tests for cdev.platform.files module."""

from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from cdev.platform.files import atomic_write_text, read_text_or_none


def test_atomic_write_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "value.txt"
    atomic_write_text(target, "hello")
    assert target.read_text(encoding="utf-8") == "hello"


def test_atomic_write_replaces_and_leaves_no_temp(tmp_path: Path) -> None:
    target = tmp_path / "value.txt"
    atomic_write_text(target, "one")
    atomic_write_text(target, "two")
    assert target.read_text(encoding="utf-8") == "two"
    assert [p.name for p in tmp_path.iterdir()] == ["value.txt"]


def test_read_text_or_none(tmp_path: Path) -> None:
    assert read_text_or_none(tmp_path / "missing") is None
    (tmp_path / "present").write_text("x", encoding="utf-8")
    assert read_text_or_none(tmp_path / "present") == "x"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_atomic_write_keeps_mode(tmp_path: Path) -> None:
    target = tmp_path / "package.json"
    target.write_text("{}", encoding="utf-8")
    target.chmod(0o640)

    atomic_write_text(target, '{"version": "1.0.1"}')

    assert stat.S_IMODE(target.stat().st_mode) == 0o640
    assert target.read_text(encoding="utf-8") == '{"version": "1.0.1"}'
