"""Nodeyard CLI entry point."""

from __future__ import annotations

import importlib.metadata
import warnings
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from nodeyard.cli.connect import connect_cmd, disconnect_cmd
from nodeyard.cli.errors import err_config
from nodeyard.cli.frameworks import frameworks_cmd
from nodeyard.cli.inspect import inspect_cmd
from nodeyard.cli.new import new_cmd
from nodeyard.cli.node import node_app
from nodeyard.cli.open import open_cmd
from nodeyard.cli.session import CliSettings
from nodeyard.config import ConfigError, load_config, validate_projects_dir
from nodeyard.logging import configure_logging

console = Console()


def _installed_version() -> str:
    try:
        return importlib.metadata.version("nodeyard")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"nodeyard {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="nodeyard",
    help=(
        "Nodeyard — a canvas of code projects, saved as one archive.\n\n"
        "  nodeyard new       Create a workspace archive.\n"
        "  nodeyard node      Add, update and remove nodes (one project directory each).\n"
        "  nodeyard open      Restore every node's project tree onto disk."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
    projects_dir: Annotated[
        Path | None,
        typer.Option(
            "--projects-dir",
            help="Directory holding the node project trees.",
        ),
    ] = None,
    provision: Annotated[
        bool,
        typer.Option(
            "--provision/--no-provision",
            help="Create virtual environments / install npm packages for nodes.",
        ),
    ] = True,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override ~/.nodeyard/config.yaml (for testing)."),
    ] = None,
) -> None:
    """Nodeyard — a canvas of code projects, saved as one archive."""
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", UserWarning)
            cfg = load_config(global_config_path=global_config)
        projects = validate_projects_dir(projects_dir or cfg.workspace.projects_path)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from None

    configure_logging("DEBUG" if verbose else cfg.logging.level)
    for warning in caught:
        console.print(f"[yellow]⚠[/] {warning.message}")

    ctx.obj = CliSettings(
        config=cfg,
        projects_dir=projects,
        provision=provision,
        global_config_path=global_config,
    )


app.command("new")(new_cmd)
app.command("connect")(connect_cmd)
app.command("disconnect")(disconnect_cmd)
app.command("inspect")(inspect_cmd)
app.command("open")(open_cmd)
app.command("frameworks")(frameworks_cmd)
app.add_typer(node_app, name="node")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Nodeyard version."""
    typer.echo(f"nodeyard {_installed_version()}")


if __name__ == "__main__":
    app()
