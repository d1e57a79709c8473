from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cdev.core.config import Config, load_config
from cdev.core.result import Err
from cdev.output.console import ConsoleProtocol, RichConsole
from cdev.platform.paths import cli_home

CONFIG_FILE = "config.toml"


@dataclass(frozen=True, slots=True)
class CLIContext:
    cli_home: Path
    config: Config
    console: ConsoleProtocol


def build_context(*, verbose: bool = False) -> CLIContext:
    console = RichConsole(verbose=verbose)
    home = cli_home()

    config = Config()
    config_result = load_config(home / CONFIG_FILE)
    if isinstance(config_result, Err):
        console.warning(f"{config_result.error.message}; using defaults")
    else:
        config = config_result.value

    return CLIContext(cli_home=home, config=config, console=console)
