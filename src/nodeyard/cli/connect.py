"""nodeyard connect / disconnect — directed edges between nodes.

Both commands are idempotent: connecting an existing edge or removing a
missing one succeeds without changing the workspace.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from nodeyard.cli.session import describe, resolve_node, run_on_archive, settings_from
from nodeyard.models import Node
from nodeyard.sync import SyncOrchestrator

console = Console()


def connect_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    source: Annotated[str, typer.Argument(help="Source node (id, id prefix or name).")],
    target: Annotated[str, typer.Argument(help="Target node (id, id prefix or name).")],
) -> None:
    """Connect SOURCE to TARGET."""

    async def _op(orchestrator: SyncOrchestrator) -> tuple[Node, Node]:
        nodes = orchestrator.store.nodes
        src = resolve_node(nodes, source)
        dst = resolve_node(nodes, target)
        orchestrator.connect(src.id, dst.id)
        return src, dst

    src, dst = run_on_archive(settings_from(ctx), archive, _op)
    console.print(f"[green]✓[/] {describe(src)} → {describe(dst)}")


def disconnect_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    source: Annotated[str, typer.Argument(help="Source node (id, id prefix or name).")],
    target: Annotated[str, typer.Argument(help="Target node (id, id prefix or name).")],
) -> None:
    """Remove the connection from SOURCE to TARGET."""

    async def _op(orchestrator: SyncOrchestrator) -> tuple[Node, Node]:
        nodes = orchestrator.store.nodes
        src = resolve_node(nodes, source)
        dst = resolve_node(nodes, target)
        orchestrator.disconnect(src.id, dst.id)
        return src, dst

    src, dst = run_on_archive(settings_from(ctx), archive, _op)
    console.print(f"[green]✓[/] {describe(src)} ↛ {describe(dst)}")
