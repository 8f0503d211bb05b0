"""nodeyard open — restore a workspace's project trees onto disk.

Every node's tree is restored under the projects directory and its
directory structure and environment are re-provisioned. The archive
itself is not rewritten.

Usage:
  nodeyard open app.nodeyard
  nodeyard open app.nodeyard --browse "Example iPhone App"
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from nodeyard.cli.session import resolve_node, run_on_archive, settings_from
from nodeyard.sync import SyncOrchestrator

console = Console()


def open_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    browse: Annotated[
        str | None,
        typer.Option("--browse", "-b", help="Open this node's directory in the file browser."),
    ] = None,
) -> None:
    """Restore every node's project tree from a workspace archive."""

    async def _op(orchestrator: SyncOrchestrator) -> list[tuple[str, str]]:
        if browse is not None:
            target = resolve_node(orchestrator.store.nodes, browse)
            orchestrator.open_in_file_browser(target.id)
        return [(n.name, n.project_path or "") for n in orchestrator.store.nodes]

    restored = run_on_archive(settings_from(ctx), archive, _op, save=False)

    if not restored:
        console.print("[yellow]Workspace has no nodes.[/]")
        return

    table = Table(title="Project directories", show_header=True, header_style="bold")
    table.add_column("Node", style="bold")
    table.add_column("Path")
    for name, path in restored:
        table.add_row(name, path)
    console.print(table)
