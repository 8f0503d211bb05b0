"""Shared plumbing for commands that open, change and save a workspace archive.

Each command body is a coroutine ``op(orchestrator)``; ``run_on_archive()``
creates the store and orchestrator on the event loop thread, loads the
archive, runs the body, saves the archive back and waits for background
environment work before returning. Known failures are printed with the
messages from ``nodeyard.cli.errors`` and end the command with exit code 1.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console

from nodeyard.archive.codec import ArchiveCodec
from nodeyard.cli.errors import (
    err_archive_invalid,
    err_archive_not_found,
    err_filesystem,
    err_load_failed,
    err_node_ambiguous,
    err_node_not_found,
    err_save_failed,
)
from nodeyard.config import NodeyardConfig
from nodeyard.environment import (
    EnvironmentProvisioner,
    FrameworkProvisioner,
    NpmProvisioner,
    NullProvisioner,
    VenvProvisioner,
)
from nodeyard.errors import (
    ArchiveFormatError,
    NodeNotFoundError,
    WorkspaceLoadError,
    WorkspaceSaveError,
)
from nodeyard.graph import NodeGraphStore
from nodeyard.models import Node, Workspace
from nodeyard.sync import SyncOrchestrator
from nodeyard.workspace import ProjectDirectoryService

console = Console()

T = TypeVar("T")


@dataclass
class CliSettings:
    """Resolved global options, stored on ``typer.Context.obj``."""

    config: NodeyardConfig
    projects_dir: Path
    provision: bool = True
    global_config_path: Path | None = None

    def build_orchestrator(self) -> SyncOrchestrator:
        store = NodeGraphStore()
        return SyncOrchestrator(
            store,
            ProjectDirectoryService(self.projects_dir),
            provisioner=self._provisioner(),
            codec=ArchiveCodec(self.config.archive.compression_level),
        )

    def _provisioner(self) -> EnvironmentProvisioner:
        if not self.provision:
            return NullProvisioner()
        return FrameworkProvisioner(
            python=VenvProvisioner(self.config.workspace.environments_path),
            node=NpmProvisioner(),
        )


def settings_from(ctx: typer.Context) -> CliSettings:
    settings = ctx.find_root().obj
    if not isinstance(settings, CliSettings):
        raise RuntimeError("CLI settings missing; invoke commands through nodeyard.cli.main.app")
    return settings


# ---------------------------------------------------------------------------
# Node references
# ---------------------------------------------------------------------------


class NodeReferenceError(LookupError):
    """A NODE argument matched no node, or more than one."""

    def __init__(self, ref: str, matches: list[Node], available: list[Node]) -> None:
        super().__init__(ref)
        self.ref = ref
        self.matches = matches
        self.available = available

    @property
    def ambiguous(self) -> bool:
        return len(self.matches) > 1


def resolve_node(nodes: list[Node], ref: str) -> Node:
    """Find a node by exact id, then exact name, then unique id prefix.

    Raises:
        NodeReferenceError: Nothing matches *ref*, or several nodes do.
    """
    for node in nodes:
        if node.id == ref:
            return node
    named = [n for n in nodes if n.name == ref]
    if len(named) == 1:
        return named[0]
    if len(named) > 1:
        raise NodeReferenceError(ref, named, nodes)
    prefixed = [n for n in nodes if n.id.startswith(ref)] if ref else []
    if len(prefixed) == 1:
        return prefixed[0]
    raise NodeReferenceError(ref, prefixed, nodes)


def describe(node: Node) -> str:
    return f"{node.name} ({node.id[:8]})"


# ---------------------------------------------------------------------------
# Running a command
# ---------------------------------------------------------------------------


def run_on_archive(
    settings: CliSettings,
    archive: Path,
    op: Callable[[SyncOrchestrator], Awaitable[T]],
    *,
    save: bool = True,
) -> T:
    """Load *archive*, run *op*, optionally save the archive back."""
    if not archive.is_file():
        console.print(err_archive_not_found(str(archive)))
        raise typer.Exit(1)

    async def _main() -> T:
        orchestrator = settings.build_orchestrator()
        orchestrator.store.bind_owner()
        try:
            await orchestrator.load_workspace(archive)
            result = await op(orchestrator)
            if save:
                await orchestrator.save_workspace(archive)
            return result
        finally:
            await orchestrator.drain()

    return run_guarded(archive, _main)


def read_archive(settings: CliSettings, archive: Path) -> Workspace:
    """Parse only the metadata of *archive* (read-only commands)."""
    if not archive.is_file():
        console.print(err_archive_not_found(str(archive)))
        raise typer.Exit(1)
    try:
        return ArchiveCodec(settings.config.archive.compression_level).read_metadata(archive)
    except ArchiveFormatError as exc:
        console.print(err_archive_invalid(str(archive), str(exc)))
        raise typer.Exit(1) from None


def run_guarded(archive: Path, main: Callable[[], Awaitable[T]]) -> T:
    """``asyncio.run(main())`` with known failures turned into exit code 1."""
    try:
        return asyncio.run(main())
    except ArchiveFormatError as exc:
        console.print(err_archive_invalid(str(archive), str(exc)))
    except WorkspaceLoadError as exc:
        console.print(err_load_failed(str(archive), str(exc)))
    except WorkspaceSaveError as exc:
        console.print(err_save_failed(str(archive), str(exc)))
    except NodeReferenceError as exc:
        if exc.ambiguous:
            console.print(err_node_ambiguous(exc.ref, [describe(n) for n in exc.matches]))
        else:
            console.print(err_node_not_found(exc.ref, [describe(n) for n in exc.available]))
    except NodeNotFoundError as exc:
        console.print(err_node_not_found(exc.node_id, []))
    except OSError as exc:
        console.print(err_filesystem(str(exc)))
    raise typer.Exit(1)
