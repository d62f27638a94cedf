from __future__ import annotations

import importlib
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config_store import CONFIG_FILE, starter_config, write_raw_toml
from .logging import get_logger, setup_logging
from .robot import Robot

logger = get_logger(__name__)

console = Console()


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _load_robot(target: str) -> Robot:
    """Import ``module:attribute`` and return the robot it names."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"expected MODULE:ATTRIBUTE, got {target!r}")

    # Allow apps living in the current directory.
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    module = importlib.import_module(module_name)
    robot = getattr(module, attr)
    if callable(robot) and not isinstance(robot, Robot):
        robot = robot()
    if not isinstance(robot, Robot):
        raise TypeError(f"{target} is not a Robot")
    return robot


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Pattern-routed Slack bots.",
)


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log every dispatch decision and Web API call.",
    ),
) -> None:
    """slack-robot command line."""
    setup_logging(debug=debug)


@app.command("init", help="Write a starter robot.toml in current dir or [FOLDER].")
def init_command(
    folder: str = typer.Argument(
        None,
        help="Folder to write the config to (defaults to current directory)",
    ),
    token: str = typer.Option(
        None,
        "--token",
        help="Slack bot token (prompted if not given)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing config file.",
    ),
) -> None:
    target_dir = Path(folder).resolve() if folder else Path.cwd()
    config_path = target_dir / CONFIG_FILE

    if config_path.exists() and not force:
        typer.echo(f"error: {config_path} already exists", err=True)
        raise typer.Exit(code=1)

    if token is None:
        token = typer.prompt("Slack bot token", hide_input=True)
    if not token.strip():
        typer.echo("error: token must not be empty", err=True)
        raise typer.Exit(code=1)

    try:
        write_raw_toml(starter_config(token.strip()), config_path)
    except OSError as e:
        typer.echo(f"error: cannot write {config_path}: {e}", err=True)
        raise typer.Exit(code=1) from e

    logger.info("cli.init.written", path=str(config_path))
    typer.echo(f"✓ Config saved to {config_path}")


@app.command("listeners")
def listeners_command(
    target: str = typer.Argument(..., help="Robot to inspect, as MODULE:ATTRIBUTE"),
) -> None:
    """List the listeners registered on a robot."""
    try:
        robot = _load_robot(target)
    except (ImportError, AttributeError, ValueError, TypeError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e

    listeners = robot.get_all_listeners()
    if not listeners:
        typer.echo("No listeners registered.")
        return

    table = Table(title="Listeners", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Command", style="green")
    table.add_column("Description")
    table.add_column("ACLs", justify="right")
    for listener in listeners:
        table.add_row(
            listener.type,
            listener.command_info,
            listener.description or "-",
            str(len(listener.acls)),
        )
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
