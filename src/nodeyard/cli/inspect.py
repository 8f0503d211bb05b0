"""nodeyard inspect — show what a workspace archive contains without opening it.

Shows the workspace metadata, one row per node and the archive members.
Nothing is extracted and no project directory is touched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from nodeyard.archive.codec import CODE_DIR, ArchiveCodec
from nodeyard.cli.session import read_archive, settings_from
from nodeyard.frameworks import spec_for

console = Console()


def inspect_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    members: Annotated[
        bool,
        typer.Option("--members/--no-members", help="List archive members."),
    ] = True,
) -> None:
    """Show the metadata and members of a workspace archive."""
    settings = settings_from(ctx)
    workspace = read_archive(settings, archive)

    console.print(
        Panel(
            f"Name:      [bold]{workspace.name}[/]\n"
            f"Schema:    {workspace.version}\n"
            f"Created:   {workspace.created:%Y-%m-%d %H:%M:%S %Z}\n"
            f"Modified:  {workspace.modified:%Y-%m-%d %H:%M:%S %Z}\n"
            f"Nodes:     {len(workspace.nodes)}\n"
            f"Edges:     {len(workspace.connections())}",
            title=f"[bold]{archive.name}[/]",
            expand=False,
        )
    )

    if workspace.nodes:
        table = Table(title="Nodes", show_header=True, header_style="bold")
        table.add_column("ID")
        table.add_column("Name", style="bold")
        table.add_column("Framework")
        table.add_column("Entry")
        table.add_column("Files", justify="right")
        for node in workspace.nodes:
            table.add_row(
                node.id[:8],
                node.name,
                spec_for(node.framework).label,
                node.entry_path,
                str(len(node.files)),
            )
        console.print(table)

    if not members:
        return

    names = ArchiveCodec().list_members(archive)
    code_files = [m for m in names if m.startswith(f"{CODE_DIR}/") and not m.endswith("/")]
    table = Table(title="Archive members", show_header=True, header_style="bold")
    table.add_column("Member")
    for name in names:
        if not name.endswith("/"):
            table.add_row(name)
    console.print(table)
    console.print(f"\n  {len(code_files)} files in node trees")
