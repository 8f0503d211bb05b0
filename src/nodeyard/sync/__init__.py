"""Synchronization between the node graph and project directories."""

from nodeyard.sync.orchestrator import SyncOrchestrator

__all__ = ["SyncOrchestrator"]
