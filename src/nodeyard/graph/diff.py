"""Decide what follow-up work a wholesale node replacement requires."""

from __future__ import annotations

from dataclasses import dataclass

from nodeyard.frameworks import spec_for
from nodeyard.models import Node


@dataclass(frozen=True)
class NodeChanges:
    framework_changed: bool = False
    needs_provisioning: bool = False
    environment_assigned: bool = False
    manifest_changed: bool = False
    files_changed: bool = False


def diff_nodes(old: Node, new: Node) -> NodeChanges:
    """Compare two versions of the same node.

    ``environment_assigned`` and ``manifest_changed`` are mutually exclusive:
    a node that just moved into an environment-requiring framework is fully
    provisioned (which installs the manifest), so no separate update is due.
    """
    old_env = spec_for(old.framework).environment
    new_env = spec_for(new.framework).environment

    environment_assigned = new_env is not None and new_env != old_env
    manifest_changed = (
        new_env is not None
        and new_env == old_env
        and old.environment_manifest != new.environment_manifest
    )

    old_files = [(f.path, f.content) for f in old.files]
    new_files = [(f.path, f.content) for f in new.files]

    return NodeChanges(
        framework_changed=old.framework != new.framework,
        needs_provisioning=new.project_path is None or new.project_path != old.project_path,
        environment_assigned=environment_assigned,
        manifest_changed=manifest_changed,
        files_changed=old_files != new_files,
    )
