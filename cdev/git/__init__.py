"""Git operations module.

Usage:
    from cdev.git import Repository

    repo = Repository(Path("/path/to/project"))
    refs = repo.ls_remote("origin")
"""

from cdev.git.repository import (
    GitError,
    GitStatus,
    RemoteRef,
    Repository,
    StatusEntry,
)

__all__ = [
    "GitError",
    "GitStatus",
    "RemoteRef",
    "Repository",
    "StatusEntry",
]
