"""Per-node project directories on disk."""

from nodeyard.workspace.directory import ProjectDirectoryService

__all__ = ["ProjectDirectoryService"]
