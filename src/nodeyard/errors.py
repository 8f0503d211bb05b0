"""Exception hierarchy shared by the graph store, archive codec and orchestrator.

Filesystem failures stay ``OSError`` inside the services; the orchestrator wraps
them into ``WorkspaceSaveError`` / ``WorkspaceLoadError`` with a readable
diagnostic and the original error chained as ``__cause__``.
"""

from __future__ import annotations


class NodeyardError(Exception):
    """Base class for all nodeyard errors."""


class NodeNotFoundError(NodeyardError, KeyError):
    """Raised when a node id does not exist in the workspace."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"No node with id '{self.node_id}'"


class OwnershipError(NodeyardError, RuntimeError):
    """Raised when the graph store is mutated from a thread that does not own it."""


class ArchiveFormatError(NodeyardError, ValueError):
    """The file is not a valid workspace archive (corrupt container or metadata)."""


class WorkspaceSaveError(NodeyardError):
    """Saving the workspace failed; no archive was written to the destination."""

    def __init__(self, message: str, node_id: str | None = None) -> None:
        super().__init__(message)
        self.node_id = node_id


class WorkspaceLoadError(NodeyardError):
    """Loading the workspace failed; the open workspace was left untouched."""
