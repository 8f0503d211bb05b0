"""Node graph store and change diffing."""

from nodeyard.graph.diff import NodeChanges, diff_nodes
from nodeyard.graph.store import NodeGraphStore

__all__ = ["NodeChanges", "NodeGraphStore", "diff_nodes"]
