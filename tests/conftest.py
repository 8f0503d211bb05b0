"""Shared pytest fixtures."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from nodeyard.archive import ArchiveCodec
from nodeyard.environment import EnvironmentProvisioner, ProvisionResult
from nodeyard.frameworks import Framework
from nodeyard.graph import NodeGraphStore
from nodeyard.models import Node, NodeKind, Workspace
from nodeyard.sync import SyncOrchestrator
from nodeyard.workspace import ProjectDirectoryService


class RecordingProvisioner(EnvironmentProvisioner):
    """Records every request; optionally reports an environment path."""

    def __init__(self, environment_root: Path | None = None, ok: bool = True) -> None:
        self.environment_root = environment_root
        self.ok = ok
        self.calls: list[tuple[str, str]] = []

    def _result(self, node: Node) -> ProvisionResult:
        if not self.ok:
            return ProvisionResult(ok=False, diagnostic="boom")
        path = str(self.environment_root / node.id) if self.environment_root else None
        return ProvisionResult(ok=True, environment_path=path)

    async def ensure_environment(self, node: Node) -> ProvisionResult:
        self.calls.append(("ensure", node.id))
        return self._result(node)

    async def update_requirements(self, node: Node) -> ProvisionResult:
        self.calls.append(("update", node.id))
        return self._result(node)


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def directory(projects_dir: Path) -> ProjectDirectoryService:
    return ProjectDirectoryService(projects_dir)


@pytest.fixture
def provisioner(tmp_path: Path) -> RecordingProvisioner:
    return RecordingProvisioner(environment_root=tmp_path / "envs")


@pytest.fixture
def failing_provisioner() -> RecordingProvisioner:
    return RecordingProvisioner(ok=False)


@pytest.fixture
def python_node() -> Node:
    return Node.create("Backend API", kind=NodeKind.BACKEND, framework=Framework.FASTAPI)


@pytest.fixture
def react_node() -> Node:
    return Node.create("Web Client", kind=NodeKind.WEBSITE, framework=Framework.REACT)


@pytest.fixture
def workspace(python_node: Node, react_node: Node) -> Workspace:
    python_node.connections.append(react_node.id)
    return Workspace(name="Demo", nodes=[python_node, react_node])


@pytest.fixture
def make_orchestrator(directory: ProjectDirectoryService, provisioner: RecordingProvisioner):
    """Factory: orchestrator over a fresh store. Call it inside the running loop."""

    def _make(
        workspace: Workspace | None = None,
        env: EnvironmentProvisioner | None = None,
    ) -> SyncOrchestrator:
        store = NodeGraphStore(workspace)
        store.bind_owner()
        return SyncOrchestrator(
            store, directory, provisioner=env or provisioner, codec=ArchiveCodec()
        )

    return _make



@pytest.fixture
def corrupt_zip_member():
    """Overwrite the start of a member's deflate stream with an invalid block header."""

    def _corrupt(path: Path, member: str) -> None:
        with zipfile.ZipFile(path) as zf:
            info = zf.getinfo(member)
        data = bytearray(path.read_bytes())
        header = info.header_offset
        name_len = int.from_bytes(data[header + 26 : header + 28], "little")
        extra_len = int.from_bytes(data[header + 28 : header + 30], "little")
        start = header + 30 + name_len + extra_len
        data[start : start + 8] = b"\xff" * 8
        path.write_bytes(bytes(data))

    return _corrupt
