"""Publish command - provision, commit and build a release."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

import typer

from cdev.cli.context import CLIContext, build_context
from cdev.cli.prompter import TyperPrompter
from cdev.core.errors import ErrorCode
from cdev.core.result import Err, Result
from cdev.output.console import Style
from cdev.output.errors import print_publish_error, publish_error_exit_code
from cdev.platform.http import UrllibHttpClient
from cdev.services.publish.credentials import FileCredentialCache
from cdev.services.publish.engine import PublishEngine
from cdev.services.publish.errors import PublishError
from cdev.services.publish.manifest import load_manifest
from cdev.services.publish.model import PublishOptions, RepoContext


def publish(
    refresh_server: bool = typer.Option(
        False, "--refresh-server", help="Choose the git host again"
    ),
    refresh_token: bool = typer.Option(False, "--refresh-token", help="Enter a new access token"),
    refresh_owner: bool = typer.Option(
        False, "--refresh-owner", help="Choose the repository owner again"
    ),
    refresh_publish: bool = typer.Option(
        False, "--refresh-publish", help="Choose the publish target again"
    ),
    build_cmd: str | None = typer.Option(
        None,
        "--build-cmd",
        help="Build command run by the relay (default from config.toml)",
        show_default=False,
    ),
    prod: bool = typer.Option(False, "--prod", help="Production release: tag and merge to master"),
    source_dir: Path | None = typer.Option(
        None,
        "--source-dir",
        help="Project directory (default: current directory)",
        show_default=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show git commands and steps"),
) -> None:
    """Publish the project through the remote build relay."""
    ctx = build_context(verbose=verbose)
    started = time.monotonic()

    root = (source_dir or Path.cwd()).expanduser().resolve()
    manifest = load_manifest(root)
    if isinstance(manifest, Err):
        _fail(ctx, manifest.error, started)

    options = PublishOptions(
        refresh_host=refresh_server,
        refresh_token=refresh_token,
        refresh_owner=refresh_owner,
        refresh_publish_target=refresh_publish,
        build_cmd=build_cmd or ctx.config.publish.build_cmd,
        production=prod,
    )
    engine = PublishEngine(
        RepoContext(
            name=manifest.value.name,
            declared_version=manifest.value.version,
            source_dir=root,
        ),
        options,
        cache=FileCredentialCache(ctx.cli_home),
        prompter=TyperPrompter(),
        console=ctx.console,
        http=UrllibHttpClient(),
        config=ctx.config,
    )

    for phase in (engine.prepare, engine.commit, engine.publish):
        result = _run_phase(ctx, phase, verbose=verbose, started=started)
        if isinstance(result, Err):
            _fail(ctx, result.error, started)

    ctx.console.success(f"publish finished in {_elapsed(started)}")


def _run_phase(
    ctx: CLIContext,
    phase: Callable[[], Result[None, PublishError]],
    *,
    verbose: bool,
    started: float,
) -> Result[None, PublishError]:
    try:
        result: Result[None, PublishError] = phase()
    except typer.Abort:
        raise
    except Exception as e:
        if verbose:
            raise
        ctx.console.error(f"unexpected error: {e}")
        ctx.console.print("hint: re-run with --verbose for the full traceback", Style.DIM)
        ctx.console.print(f"elapsed: {_elapsed(started)}", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.IO_ERROR)) from e
    return result


def _fail(ctx: CLIContext, error: PublishError, started: float) -> NoReturn:
    print_publish_error(error, ctx.console)
    ctx.console.print(f"elapsed: {_elapsed(started)}", Style.DIM)
    raise typer.Exit(code=publish_error_exit_code(error))


def _elapsed(started: float) -> str:
    seconds = time.monotonic() - started
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s" if minutes else f"{seconds:.1f}s"
