"""nodeyard new — create an empty workspace archive.

Creates:
  <archive>                                  — workspace archive (zip)
  <projects-dir>/<workspace name>/           — parent of the node project trees
  ~/.nodeyard/config.yaml                    — global config (created once, mode 0o600)

With --with-example the workspace starts with one Swift iPhone app node.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from nodeyard.archive.codec import ARCHIVE_SUFFIX
from nodeyard.cli.errors import err_archive_exists
from nodeyard.cli.session import describe, run_guarded, settings_from
from nodeyard.config import ensure_global_config
from nodeyard.frameworks import Framework
from nodeyard.models import NodeKind, Point

console = Console()


def new_cmd(
    ctx: typer.Context,
    archive: Annotated[
        Path,
        typer.Argument(help=f"Archive to create (conventionally *{ARCHIVE_SUFFIX})."),
    ],
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Workspace name. Defaults to the archive file name."),
    ] = None,
    with_example: Annotated[
        bool,
        typer.Option("--with-example", help="Add an example iPhone app node."),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", help="Replace an existing archive."),
    ] = False,
) -> None:
    """Create a new workspace archive."""
    settings = settings_from(ctx)
    if archive.exists() and not force:
        console.print(err_archive_exists(str(archive)))
        raise typer.Exit(1)

    workspace_name = name or archive.stem

    async def _main() -> list[str]:
        orchestrator = settings.build_orchestrator()
        orchestrator.store.bind_owner()
        try:
            orchestrator.new_workspace(workspace_name)
            created: list[str] = []
            if with_example:
                node = await orchestrator.create_node(
                    "Example iPhone App",
                    kind=NodeKind.IPHONE_APP,
                    framework=Framework.SWIFT,
                    position=Point(100, 100),
                )
                created.append(describe(node))
            await orchestrator.save_workspace(archive)
            return created
        finally:
            await orchestrator.drain()

    created = run_guarded(archive, _main)

    cfg_path = ensure_global_config(settings.global_config_path)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print(f"[bold green]✓ Workspace '{workspace_name}' created:[/] {archive}")
    for label in created:
        console.print(f"  [green]✓[/] node {label}")
    console.print("\nNext steps:")
    console.print(f"  1. nodeyard node add {archive} --name <name> --framework <framework>")
    console.print(f"  2. nodeyard connect {archive} <source> <target>")
    console.print(f"  3. nodeyard open {archive}")
