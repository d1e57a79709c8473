"""Platform layer: subprocesses, user paths, files, HTTP."""

from .files import atomic_write_text, read_text_or_none
from .http import HttpClient, HttpError, MockHttpClient, UrllibHttpClient
from .paths import cli_home, home, ssh_dir
from .process import ProcessError, command_exists, run

__all__ = [
    # files
    "atomic_write_text",
    "read_text_or_none",
    # http
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "UrllibHttpClient",
    # paths
    "cli_home",
    "home",
    "ssh_dir",
    # process
    "ProcessError",
    "command_exists",
    "run",
]
