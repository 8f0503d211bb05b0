"""Node Graph Store — the single owner of the canonical workspace graph.

All mutations are synchronous and must run on the owner thread. The store
records the thread that created it; ``bind_owner()`` moves ownership (the
orchestrator calls it once its event loop is running). Worker threads only
ever see snapshots from ``snapshot()`` / ``get_node_copy()``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from nodeyard.errors import NodeNotFoundError, OwnershipError
from nodeyard.models import CanvasState, Connection, Node, Workspace

logger = logging.getLogger(__name__)


class NodeGraphStore:
    """In-memory node graph with single-writer enforcement."""

    def __init__(self, workspace: Workspace | None = None) -> None:
        self._workspace = workspace if workspace is not None else Workspace()
        self._selected_id: str | None = None
        self._owner = threading.get_ident()

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def bind_owner(self) -> None:
        """Make the calling thread the owner of this store."""
        self._owner = threading.get_ident()

    def _check_owner(self) -> None:
        if threading.get_ident() != self._owner:
            raise OwnershipError(
                "Node graph store mutated outside its owner thread; "
                "send the change to the owner instead."
            )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    @property
    def nodes(self) -> list[Node]:
        return list(self._workspace.nodes)

    @property
    def selected_node(self) -> Node | None:
        if self._selected_id is None:
            return None
        try:
            return self._workspace.node(self._selected_id)
        except NodeNotFoundError:
            return None

    def node(self, node_id: str) -> Node:
        return self._workspace.node(node_id)

    def get_node_copy(self, node_id: str) -> Node:
        return self._workspace.node(node_id).copy()

    def connections(self) -> set[Connection]:
        return self._workspace.connections()

    def snapshot(self) -> Workspace:
        return self._workspace.copy()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> Node:
        self._check_owner()
        if any(n.id == node.id for n in self._workspace.nodes):
            raise ValueError(f"Node '{node.id}' already exists")
        self._workspace.nodes.append(node)
        self._workspace.touch()
        logger.debug("Added node %s (%s)", node.id, node.name)
        return node

    def remove_node(self, node_id: str) -> Node:
        """Remove a node and every edge that points at it.

        The node's project directory is left on disk.
        """
        self._check_owner()
        index = self._workspace.index_of(node_id)
        removed = self._workspace.nodes.pop(index)
        for other in self._workspace.nodes:
            if node_id in other.connections:
                other.connections = [t for t in other.connections if t != node_id]
        if self._selected_id == node_id:
            self._selected_id = None
        self._workspace.touch()
        logger.debug("Removed node %s (%s)", removed.id, removed.name)
        return removed

    def update_node(self, replacement: Node) -> Node:
        """Replace a node wholesale and return the previous version."""
        self._check_owner()
        index = self._workspace.index_of(replacement.id)
        previous = self._workspace.nodes[index]
        self._workspace.nodes[index] = replacement
        self._workspace.touch()
        return previous

    def add_connection(self, source: str, target: str) -> None:
        self._check_owner()
        src = self._workspace.node(source)
        self._workspace.node(target)
        if target not in src.connections:
            src.connections.append(target)
            self._workspace.touch()

    def remove_connection(self, source: str, target: str) -> None:
        self._check_owner()
        try:
            src = self._workspace.node(source)
        except NodeNotFoundError:
            return
        if target in src.connections:
            src.connections = [t for t in src.connections if t != target]
            self._workspace.touch()

    def select_node(self, node_id: str | None) -> None:
        self._check_owner()
        if node_id is not None:
            self._workspace.node(node_id)
        self._selected_id = node_id

    def mark_saved(self, modified: datetime) -> None:
        """Align the modification time with the one written to the archive."""
        self._check_owner()
        self._workspace.modified = modified

    def set_canvas(self, offset_x: float, offset_y: float, scale: float) -> None:
        self._check_owner()
        if scale <= 0:
            raise ValueError(f"Canvas scale must be positive, got {scale}")
        self._workspace.canvas = CanvasState(offset_x=offset_x, offset_y=offset_y, scale=scale)

    def replace_workspace(self, workspace: Workspace) -> None:
        self._check_owner()
        self._workspace = workspace
        self._selected_id = None
