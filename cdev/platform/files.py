"""Small filesystem helpers shared by the credential cache and the manifest writer."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "read_text_or_none"]


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``content`` in one rename.

    Readers see either the old or the new file, never a partial one. When the
    file already exists its permission bits are carried over, so rewriting
    package.json does not change its mode.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding=encoding,
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        staged = Path(tmp.name)
        try:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        except OSError:
            staged.unlink(missing_ok=True)
            raise

    try:
        if path.exists():
            shutil.copymode(path, staged)
        os.replace(staged, path)
    except OSError:
        staged.unlink(missing_ok=True)
        raise


def read_text_or_none(path: Path, *, encoding: str = "utf-8") -> str | None:
    """Contents of ``path``, or None when it does not exist."""
    try:
        return path.read_text(encoding=encoding)
    except FileNotFoundError:
        return None
