"""Process exit codes.

The CLI maps every failure to one of these codes. Values are part of the
command-line contract and must stay stable:
- 0: Success
- 1: User error (bad input, conflicted tree, declined confirmation)
- 2: Environment error (missing credentials, ssh not authorized)
- 3: Build error (remote build reported a failure action)
- 4: Network error (host API or build relay unreachable)
- 5: I/O error (repository could not be created, git failed)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
