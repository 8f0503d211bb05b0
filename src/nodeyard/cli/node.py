"""nodeyard node CLI commands.

Commands:
  nodeyard node add <archive>            — add a node and provision its directory
  nodeyard node remove <archive> <node>  — remove a node and its connections
  nodeyard node list <archive>           — table of nodes
  nodeyard node update <archive> <node>  — rename, change framework, files or manifest

<node> is a node id, a unique id prefix or a node name.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from nodeyard.cli.errors import err_invalid_value, err_unknown_framework, warn_files_kept
from nodeyard.cli.session import (
    CliSettings,
    describe,
    read_archive,
    resolve_node,
    run_on_archive,
    settings_from,
)
from nodeyard.frameworks import Framework, parse_framework, spec_for
from nodeyard.models import Node, NodeKind, Point, ProjectFile, validate_relative_path
from nodeyard.sync import SyncOrchestrator

console = Console()

node_app = typer.Typer(
    name="node",
    help="Manage the nodes of a workspace (add, remove, list, update).",
    add_completion=False,
)


# ---------------------------------------------------------------------------
# Option parsing
# ---------------------------------------------------------------------------


def _framework_option(settings: CliSettings, value: str) -> Framework:
    enabled = settings.config.enabled_frameworks()
    try:
        framework = parse_framework(value)
    except ValueError:
        framework = None
    if framework is None or framework not in enabled:
        console.print(err_unknown_framework(value, [fw.value for fw in enabled]))
        raise typer.Exit(1)
    return framework


def _kind_option(value: str) -> NodeKind:
    try:
        return NodeKind(value.strip().lower())
    except ValueError:
        console.print(
            err_invalid_value(
                f"Unknown node kind '{value}'. Choose one of: "
                + ", ".join(k.value for k in NodeKind)
            )
        )
        raise typer.Exit(1) from None


def _read_manifest(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(err_invalid_value(f"Cannot read manifest '{path}': {exc}"))
        raise typer.Exit(1) from None


def _parse_file_specs(specs: list[str]) -> list[tuple[str, str]]:
    """Parse ``RELPATH=LOCALFILE`` values into (relative path, content) pairs."""
    parsed: list[tuple[str, str]] = []
    for spec in specs:
        rel, sep, local = spec.partition("=")
        if not sep or not rel or not local:
            console.print(err_invalid_value(f"--file expects RELPATH=LOCALFILE, got '{spec}'"))
            raise typer.Exit(1)
        try:
            rel = validate_relative_path(rel)
        except ValueError as exc:
            console.print(err_invalid_value(str(exc)))
            raise typer.Exit(1) from None
        try:
            content = Path(local).read_text(encoding="utf-8")
        except OSError as exc:
            console.print(err_invalid_value(f"Cannot read '{local}': {exc}"))
            raise typer.Exit(1) from None
        parsed.append((rel, content))
    return parsed


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@node_app.command("add")
def node_add_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Node name. Defaults to 'New Node <n>'."),
    ] = None,
    framework: Annotated[
        str,
        typer.Option("--framework", "-f", help="Framework (see: nodeyard frameworks)."),
    ] = Framework.SWIFT.value,
    kind: Annotated[
        str,
        typer.Option("--kind", "-k", help="Canvas category of the node."),
    ] = NodeKind.CUSTOM.value,
    x: Annotated[float | None, typer.Option("--x", help="Canvas x position.")] = None,
    y: Annotated[float | None, typer.Option("--y", help="Canvas y position.")] = None,
    manifest: Annotated[
        Path | None,
        typer.Option("--manifest", "-m", help="Dependency manifest file (e.g. requirements.txt)."),
    ] = None,
) -> None:
    """Add a node; its project directory is created and its entry file written."""
    settings = settings_from(ctx)
    chosen = _framework_option(settings, framework)
    node_kind = _kind_option(kind)
    manifest_text = _read_manifest(manifest) if manifest is not None else ""

    async def _op(orchestrator: SyncOrchestrator) -> Node:
        count = len(orchestrator.store.nodes)
        offset = 200 + count * 50
        position = Point(x if x is not None else offset, y if y is not None else offset)
        return await orchestrator.create_node(
            name or f"New Node {count + 1}",
            kind=node_kind,
            framework=chosen,
            position=position,
            environment_manifest=manifest_text,
        )

    node = run_on_archive(settings, archive, _op)
    console.print(f"[green]✓[/] Added node {describe(node)}")
    console.print(f"  {node.project_path}")


@node_app.command("remove")
def node_remove_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    node_ref: Annotated[str, typer.Argument(metavar="NODE", help="Node id, id prefix or name.")],
    delete_files: Annotated[
        bool,
        typer.Option("--delete-files", help="Also delete the node's project directory."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a node and every connection to or from it."""
    settings = settings_from(ctx)
    if delete_files and not yes:
        if not typer.confirm(f"Delete the project directory of '{node_ref}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    async def _op(orchestrator: SyncOrchestrator) -> tuple[Node, Path]:
        target = resolve_node(orchestrator.store.nodes, node_ref)
        root = orchestrator.directory.project_path(target, orchestrator.workspace_name)
        removed = await orchestrator.remove_node(target.id, delete_files=delete_files)
        return removed, root

    removed, root = run_on_archive(settings, archive, _op)
    console.print(f"[green]✓[/] Removed node {describe(removed)}")
    if not delete_files:
        console.print(warn_files_kept(str(root)))


@node_app.command("list")
def node_list_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
) -> None:
    """List the nodes of a workspace."""
    settings = settings_from(ctx)
    workspace = read_archive(settings, archive)

    if not workspace.nodes:
        console.print(f"[yellow]Workspace '{workspace.name}' has no nodes.[/]")
        raise typer.Exit(0)

    names = {n.id: n.name for n in workspace.nodes}
    table = Table(title=f"Nodes — {workspace.name}", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Name", style="bold")
    table.add_column("Kind")
    table.add_column("Framework")
    table.add_column("Files", justify="right")
    table.add_column("Connects to")

    for node in workspace.nodes:
        table.add_row(
            node.id[:8],
            node.name,
            node.kind.value,
            spec_for(node.framework).label,
            str(len(node.files)),
            ", ".join(names.get(t, t) for t in node.connections),
        )

    console.print(table)
    console.print(f"\n  {len(workspace.nodes)} nodes, {len(workspace.connections())} connections")


@node_app.command("update")
def node_update_cmd(
    ctx: typer.Context,
    archive: Annotated[Path, typer.Argument(help="Workspace archive.")],
    node_ref: Annotated[str, typer.Argument(metavar="NODE", help="Node id, id prefix or name.")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New node name.")] = None,
    framework: Annotated[
        str | None,
        typer.Option("--framework", "-f", help="New framework."),
    ] = None,
    kind: Annotated[str | None, typer.Option("--kind", "-k", help="New canvas category.")] = None,
    manifest: Annotated[
        Path | None,
        typer.Option("--manifest", "-m", help="Replace the dependency manifest with this file."),
    ] = None,
    files: Annotated[
        list[str] | None,
        typer.Option("--file", help="Add or replace a file: RELPATH=LOCALFILE (repeatable)."),
    ] = None,
    untrack: Annotated[
        list[str] | None,
        typer.Option("--untrack", help="Stop tracking RELPATH; the file stays on disk."),
    ] = None,
) -> None:
    """Change a node; its directory and environment follow the change."""
    settings = settings_from(ctx)
    new_framework = _framework_option(settings, framework) if framework is not None else None
    new_kind = _kind_option(kind) if kind is not None else None
    manifest_text = _read_manifest(manifest) if manifest is not None else None
    file_updates = _parse_file_specs(files or [])

    async def _op(orchestrator: SyncOrchestrator) -> Node:
        target = resolve_node(orchestrator.store.nodes, node_ref)
        replacement = target.copy()
        if name is not None:
            replacement.name = name
        if new_framework is not None:
            replacement.framework = new_framework
        if new_kind is not None:
            replacement.kind = new_kind
        if manifest_text is not None:
            replacement.environment_manifest = manifest_text
        for rel, content in file_updates:
            existing = replacement.file_by_path(rel)
            if existing is not None:
                existing.content = content
            else:
                replacement.add_file(ProjectFile.create(rel, content=content))
        for rel in untrack or []:
            tracked = replacement.file_by_path(rel)
            if tracked is None:
                raise _UntrackError(f"Node '{replacement.name}' does not track '{rel}'")
            if tracked.path == replacement.entry_path:
                raise _UntrackError(f"'{rel}' is the entry file of '{replacement.name}'")
            try:
                replacement.remove_file(tracked.id)
            except ValueError as exc:
                raise _UntrackError(str(exc)) from None
        return await orchestrator.update_node(replacement)

    try:
        node = run_on_archive(settings, archive, _op)
    except _UntrackError as exc:
        console.print(err_invalid_value(str(exc)))
        raise typer.Exit(1) from None
    console.print(f"[green]✓[/] Updated node {describe(node)}")
    console.print(f"  {node.project_path}")


class _UntrackError(Exception):
    pass
