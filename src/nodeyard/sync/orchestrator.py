"""Synchronization Orchestrator — concurrent disk work, single-owner graph.

Threading model:
  * The asyncio event loop thread is the owner of the ``NodeGraphStore``.
    Only coroutine code in this module (running on that loop) mutates it.
  * Blocking I/O (directory creation, file flushes, archive build/extract)
    runs on worker threads via ``asyncio.to_thread``. Workers receive node
    snapshots (deep copies) and return results; they never see the store.
  * Each node has an ``asyncio.Lock``; flushes to the same node are
    serialized, flushes to different nodes run concurrently.
  * Environment provisioning is fire-and-forget: a background task whose
    failures are only logged. ``drain()`` waits for outstanding tasks.

Save is all-or-nothing: every node is flushed first and the first failure
aborts before any archive is built. Load never touches the store until every
node tree has been restored.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Iterable
from pathlib import Path
from typing import Any

from nodeyard.archive.codec import ArchiveCodec, ExtractedArchive
from nodeyard.environment.provisioner import (
    EnvironmentProvisioner,
    NullProvisioner,
    ProvisionResult,
)
from nodeyard.errors import (
    ArchiveFormatError,
    NodeNotFoundError,
    WorkspaceLoadError,
    WorkspaceSaveError,
)
from nodeyard.frameworks import Framework
from nodeyard.graph.diff import diff_nodes
from nodeyard.graph.store import NodeGraphStore
from nodeyard.models import Node, NodeKind, Point, Workspace
from nodeyard.workspace.directory import ProjectDirectoryService

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Sequences and parallelises node directory work around one graph store."""

    def __init__(
        self,
        store: NodeGraphStore,
        directory: ProjectDirectoryService,
        provisioner: EnvironmentProvisioner | None = None,
        codec: ArchiveCodec | None = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.provisioner = provisioner or NullProvisioner()
        self.codec = codec or ArchiveCodec()
        self._locks: dict[str, asyncio.Lock] = {}
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def workspace_name(self) -> str:
        return self.store.workspace.name

    def _lock_for(self, node_id: str) -> asyncio.Lock:
        lock = self._locks.get(node_id)
        if lock is None:
            lock = self._locks[node_id] = asyncio.Lock()
        return lock

    def _prune_locks(self, keep: Iterable[str] = ()) -> None:
        # Held locks are kept across workspace swaps.
        wanted = set(keep)
        self._locks = {
            node_id: lock
            for node_id, lock in self._locks.items()
            if node_id in wanted or lock.locked()
        }

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=label)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)

    async def drain(self) -> None:
        """Wait until every background task (provisioning, file browser) finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Graph operations
    # ------------------------------------------------------------------

    def new_workspace(self, name: str) -> Workspace:
        workspace = Workspace(name=name)
        self.store.replace_workspace(workspace)
        self._prune_locks()
        return workspace

    async def create_node(
        self,
        name: str,
        kind: NodeKind = NodeKind.CUSTOM,
        framework: Framework = Framework.SWIFT,
        position: Point | None = None,
        environment_manifest: str = "",
    ) -> Node:
        """Create a node with its entry file, add it to the graph and provision it."""
        node = Node.create(name, kind=kind, framework=framework, position=position)
        node.environment_manifest = environment_manifest
        self.store.add_node(node)
        self.store.select_node(node.id)
        return await self.initialize_node(node.id)

    async def remove_node(self, node_id: str, delete_files: bool = False) -> Node:
        """Remove a node (and its edges). Its directory is kept unless *delete_files*."""
        removed = self.store.remove_node(node_id)
        lock = self._locks.pop(node_id, None)
        if delete_files:
            if lock is not None:
                async with lock:
                    pass
            await asyncio.to_thread(self.directory.remove_project, removed, self.workspace_name)
        return removed

    def connect(self, source: str, target: str) -> None:
        self.store.add_connection(source, target)

    def disconnect(self, source: str, target: str) -> None:
        self.store.remove_connection(source, target)

    async def update_node(self, replacement: Node) -> Node:
        """Replace a node and run whatever disk / environment work the change implies."""
        current = self.store.node(replacement.id)
        replacement = replacement.copy()
        workspace_name = self.workspace_name

        replacement.ensure_entry_file()
        if replacement.file_by_id(replacement.selected_file_id or "") is None:
            entry = replacement.entry_file() or replacement.files[0]
            replacement.selected_file_id = entry.id

        # A rename moves the directory; the recorded path is re-derived below.
        expected = self.directory.project_path(replacement, workspace_name)
        if replacement.project_path and Path(replacement.project_path) != expected:
            old_root = Path(replacement.project_path)
            async with self._lock_for(replacement.id):
                await asyncio.to_thread(self.directory.move_project, old_root, expected)
            replacement.project_path = None

        changes = diff_nodes(current, replacement)
        self.store.update_node(replacement)

        if changes.needs_provisioning:
            updated = await self.initialize_node(
                replacement.id, provision_environment=changes.environment_assigned
            )
        else:
            if changes.files_changed or changes.framework_changed:
                await self.flush_node(replacement.id)
            if changes.environment_assigned:
                self._schedule_environment(replacement.id, update=False)
            updated = self.store.node(replacement.id)

        if changes.manifest_changed:
            self._schedule_environment(replacement.id, update=True)
        return updated

    # ------------------------------------------------------------------
    # Directory provisioning + flush
    # ------------------------------------------------------------------

    async def initialize_node(self, node_id: str, provision_environment: bool = True) -> Node:
        """Provision *node_id*'s directory, flush its files and record the path.

        Environment provisioning is scheduled only after the directory exists.
        """
        node = self.store.node(node_id)
        if node.entry_file() is None or node.file_by_id(node.selected_file_id or "") is None:
            fixed = node.copy()
            entry = fixed.ensure_entry_file()
            if fixed.file_by_id(fixed.selected_file_id or "") is None:
                fixed.selected_file_id = entry.id
            self.store.update_node(fixed)

        workspace_name = self.workspace_name
        async with self._lock_for(node_id):
            snapshot = self.store.get_node_copy(node_id)
            root = await asyncio.to_thread(self._provision_sync, snapshot, workspace_name)

        try:
            current = self.store.node(node_id)
        except NodeNotFoundError:
            logger.info("Node %s was removed while its directory was being provisioned", node_id)
            raise
        updated = current.copy()
        updated.project_path = str(root)
        self.store.update_node(updated)

        if provision_environment and updated.needs_environment:
            self._schedule_environment(node_id, update=False)
        return updated

    async def initialize_all(self, node_ids: Iterable[str] | None = None) -> dict[str, BaseException]:
        """Initialise many nodes concurrently. Returns failures by node id (logged)."""
        ids = list(node_ids) if node_ids is not None else [n.id for n in self.store.nodes]
        results = await asyncio.gather(
            *(self.initialize_node(node_id) for node_id in ids), return_exceptions=True
        )
        failures: dict[str, BaseException] = {}
        for node_id, result in zip(ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Could not initialise node %s: %s", node_id, result)
                failures[node_id] = result
        return failures

    async def flush_node(self, node_id: str) -> Path:
        """Write *node_id*'s current files to disk (serialized per node)."""
        workspace_name = self.workspace_name
        async with self._lock_for(node_id):
            snapshot = self.store.get_node_copy(node_id)
            return await asyncio.to_thread(self._provision_sync, snapshot, workspace_name)

    async def _flush_for_save(self, saved: Node, workspace_name: str) -> Node:
        # Store copy read under the lock; it may be newer than *saved*.
        async with self._lock_for(saved.id):
            try:
                node = self.store.get_node_copy(saved.id)
            except NodeNotFoundError:
                node = saved
            await asyncio.to_thread(self._provision_sync, node, workspace_name)
            return node

    def _provision_sync(self, node: Node, workspace_name: str) -> Path:
        # Worker thread: operates on a snapshot only.
        root = self.directory.create_project_structure(node, workspace_name)
        self.directory.save_all_files(node, root)
        return root

    # ------------------------------------------------------------------
    # Environments
    # ------------------------------------------------------------------

    def _schedule_environment(self, node_id: str, update: bool) -> None:
        action = "update" if update else "ensure"
        self._spawn(self._provision_environment(node_id, update), f"env-{action}-{node_id}")

    async def _provision_environment(self, node_id: str, update: bool) -> None:
        try:
            snapshot = self.store.get_node_copy(node_id)
        except NodeNotFoundError:
            return
        try:
            if update:
                result = await self.provisioner.update_requirements(snapshot)
            else:
                result = await self.provisioner.ensure_environment(snapshot)
        except Exception:
            logger.exception("Environment provisioning crashed for node %s", snapshot.name)
            return

        self._record_environment(node_id, snapshot.name, result)

    def _record_environment(self, node_id: str, name: str, result: ProvisionResult) -> None:
        if not result.ok:
            logger.warning("Environment provisioning failed for %s: %s", name, result.diagnostic)
            return
        if not result.environment_path:
            return
        try:
            current = self.store.node(node_id)
        except NodeNotFoundError:
            return
        if current.environment_path != result.environment_path:
            updated = current.copy()
            updated.environment_path = result.environment_path
            self.store.update_node(updated)
        logger.info("Environment ready for %s at %s", name, result.environment_path)

    def open_in_file_browser(self, node_id: str) -> None:
        """Fire-and-forget: open the node's directory in the platform file browser."""
        snapshot = self.store.get_node_copy(node_id)
        self._spawn(
            asyncio.to_thread(self.directory.open_in_file_browser, snapshot, self.workspace_name),
            f"open-{node_id}",
        )

    # ------------------------------------------------------------------
    # Save / load
    # ------------------------------------------------------------------

    async def save_workspace(self, dest: Path) -> Path:
        """Flush every node concurrently, then write the archive to *dest*.

        Raises:
            WorkspaceSaveError: If any node flush or the archive build fails.
                *dest* keeps its previous content.
        """
        snapshot = self.store.snapshot()
        workspace_name = snapshot.name

        results = await asyncio.gather(
            *(self._flush_for_save(node, workspace_name) for node in snapshot.nodes),
            return_exceptions=True,
        )
        for node, result in zip(snapshot.nodes, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                raise WorkspaceSaveError(
                    f"Could not write files for node '{node.name}': {result}", node_id=node.id
                ) from result

        snapshot.nodes = list(results)
        roots = {node.id: self.directory.project_path(node, workspace_name) for node in snapshot.nodes}
        snapshot.touch()
        try:
            written = await asyncio.to_thread(self.codec.build_archive, snapshot, roots, Path(dest))
        except OSError as exc:
            raise WorkspaceSaveError(f"Could not write archive '{dest}': {exc}") from exc
        self.store.mark_saved(snapshot.modified)
        return written

    async def load_workspace(self, path: Path) -> Workspace:
        """Replace the open workspace with the archive at *path*.

        Raises:
            ArchiveFormatError: *path* is not a valid workspace archive.
            WorkspaceLoadError: Extraction or restoring a node tree failed.
            In both cases the open workspace is unchanged.
        """
        try:
            extracted = await asyncio.to_thread(self.codec.extract, Path(path))
        except ArchiveFormatError:
            raise
        except OSError as exc:
            raise WorkspaceLoadError(f"Could not read archive '{path}': {exc}") from exc

        try:
            workspace = extracted.workspace
            roots = {n.id: self.directory.project_path(n, workspace.name) for n in workspace.nodes}
            results = await asyncio.gather(
                *(
                    self._restore_locked(extracted, node.copy(), roots[node.id])
                    for node in workspace.nodes
                ),
                return_exceptions=True,
            )
        finally:
            await asyncio.to_thread(extracted.cleanup)

        for node, result in zip(workspace.nodes, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                raise WorkspaceLoadError(
                    f"Could not restore files for node '{node.name}': {result}"
                ) from result

        for node in workspace.nodes:
            node.project_path = str(roots[node.id])
        self.store.replace_workspace(workspace)
        self._prune_locks(n.id for n in workspace.nodes)
        logger.info("Loaded workspace '%s' (%d nodes) from %s", workspace.name, len(workspace.nodes), path)

        # Restored trees carry no live environment; re-run node initialisation.
        await self.initialize_all()
        return self.store.workspace

    async def _restore_locked(self, extracted: ExtractedArchive, node: Node, root: Path) -> int:
        async with self._lock_for(node.id):
            return await asyncio.to_thread(self._restore_sync, extracted, node, root)

    def _restore_sync(self, extracted: ExtractedArchive, node: Node, root: Path) -> int:
        # Worker thread: staged tree first, then the tracked files from metadata.
        restored = self.codec.restore_node_tree(extracted, node.id, root)
        self.directory.save_all_files(node, root)
        return restored
