"""Environment provisioning — managed runtimes for nodes that need one.

The orchestrator only calls the two coroutine methods of
``EnvironmentProvisioner`` and logs the result. Provisioning is best effort:
a node without a working environment can still be edited and saved.

Security requirements:
- shell=False always (no command injection through node names or manifests).
- Subprocesses run on a worker thread (``asyncio.to_thread``), never on the
  owner loop.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from nodeyard.frameworks import EnvironmentKind, spec_for
from nodeyard.models import Node
from nodeyard.workspace.writer import write_atomic

logger = logging.getLogger(__name__)

_REQUIREMENTS_NAME = "requirements.txt"


@dataclass
class ProvisionResult:
    ok: bool
    diagnostic: str = ""
    environment_path: str | None = None


class EnvironmentProvisioner(ABC):
    """Creates and updates the managed runtime of a node."""

    @abstractmethod
    async def ensure_environment(self, node: Node) -> ProvisionResult:
        """Create the environment for *node* if needed and install its manifest."""

    @abstractmethod
    async def update_requirements(self, node: Node) -> ProvisionResult:
        """Re-install *node*'s manifest into its existing environment."""


class NullProvisioner(EnvironmentProvisioner):
    """Accepts every request and does nothing."""

    async def ensure_environment(self, node: Node) -> ProvisionResult:
        return ProvisionResult(ok=True, diagnostic="provisioning disabled")

    async def update_requirements(self, node: Node) -> ProvisionResult:
        return ProvisionResult(ok=True, diagnostic="provisioning disabled")


# ---------------------------------------------------------------------------
# Python virtual environments
# ---------------------------------------------------------------------------


class VenvProvisioner(EnvironmentProvisioner):
    """One virtual environment per node under *environments_dir*/<node id>."""

    def __init__(self, environments_dir: Path | str, python: str | None = None) -> None:
        self.environments_dir = Path(environments_dir).expanduser()
        self.python = python or sys.executable

    def environment_path(self, node: Node) -> Path:
        return self.environments_dir / node.id

    def _pip(self, venv: Path) -> Path:
        if sys.platform.startswith("win"):
            return venv / "Scripts" / "pip.exe"
        return venv / "bin" / "pip"

    async def ensure_environment(self, node: Node) -> ProvisionResult:
        return await asyncio.to_thread(self._ensure_sync, node)

    async def update_requirements(self, node: Node) -> ProvisionResult:
        return await asyncio.to_thread(self._update_sync, node)

    def _ensure_sync(self, node: Node) -> ProvisionResult:
        venv = self.environment_path(node)
        if not self._pip(venv).exists():
            venv.parent.mkdir(parents=True, exist_ok=True)
            failed = _run([self.python, "-m", "venv", str(venv)])
            if failed:
                return ProvisionResult(ok=False, diagnostic=f"venv creation failed: {failed}")
            logger.info("Created virtual environment for %s at %s", node.name, venv)
        if not node.environment_manifest.strip():
            return ProvisionResult(ok=True, environment_path=str(venv))
        return self._update_sync(node)

    def _update_sync(self, node: Node) -> ProvisionResult:
        venv = self.environment_path(node)
        pip = self._pip(venv)
        if not pip.exists():
            return ProvisionResult(
                ok=False, diagnostic=f"virtual environment not found for node '{node.name}'"
            )
        requirements = venv / _REQUIREMENTS_NAME
        write_atomic(requirements, node.environment_manifest)
        failed = _run([str(pip), "install", "-r", str(requirements), "--upgrade"])
        if failed:
            return ProvisionResult(
                ok=False, diagnostic=f"pip install failed: {failed}", environment_path=str(venv)
            )
        return ProvisionResult(ok=True, environment_path=str(venv))


# ---------------------------------------------------------------------------
# Node.js dependencies
# ---------------------------------------------------------------------------


class NpmProvisioner(EnvironmentProvisioner):
    """Installs JavaScript dependencies into the node's own project directory.

    The manifest is a whitespace-separated package list (``express@4 cors``);
    an empty manifest installs whatever ``package.json`` declares.
    """

    def __init__(self, npm: str | None = None) -> None:
        self.npm = npm

    def _resolve_npm(self) -> str | None:
        return self.npm or shutil.which("npm")

    async def ensure_environment(self, node: Node) -> ProvisionResult:
        return await asyncio.to_thread(self._install_sync, node)

    async def update_requirements(self, node: Node) -> ProvisionResult:
        return await asyncio.to_thread(self._install_sync, node)

    def _install_sync(self, node: Node) -> ProvisionResult:
        npm = self._resolve_npm()
        if npm is None:
            return ProvisionResult(ok=False, diagnostic="npm not found on PATH")
        if not node.project_path:
            return ProvisionResult(ok=False, diagnostic="project directory not provisioned")
        project = Path(node.project_path)
        failed = _run([npm, "install", *node.environment_manifest.split()], cwd=project)
        if failed:
            return ProvisionResult(ok=False, diagnostic=f"npm install failed: {failed}")
        return ProvisionResult(ok=True, environment_path=str(project / "node_modules"))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class FrameworkProvisioner(EnvironmentProvisioner):
    """Routes each node to the provisioner for its framework's runtime."""

    def __init__(
        self,
        python: EnvironmentProvisioner | None = None,
        node: EnvironmentProvisioner | None = None,
    ) -> None:
        self._by_kind: dict[EnvironmentKind, EnvironmentProvisioner] = {}
        if python is not None:
            self._by_kind[EnvironmentKind.PYTHON] = python
        if node is not None:
            self._by_kind[EnvironmentKind.NODE] = node

    def _delegate(self, node: Node) -> EnvironmentProvisioner | None:
        kind = spec_for(node.framework).environment
        return self._by_kind.get(kind) if kind is not None else None

    async def ensure_environment(self, node: Node) -> ProvisionResult:
        delegate = self._delegate(node)
        if delegate is None:
            return ProvisionResult(ok=True, diagnostic="no managed environment")
        return await delegate.ensure_environment(node)

    async def update_requirements(self, node: Node) -> ProvisionResult:
        delegate = self._delegate(node)
        if delegate is None:
            return ProvisionResult(ok=True, diagnostic="no managed environment")
        return await delegate.update_requirements(node)


def _run(cmd: list[str], cwd: Path | None = None) -> str:
    """Run *cmd* (shell=False). Returns "" on success, else a short diagnostic."""
    try:
        subprocess.run(
            cmd,
            cwd=cwd,
            shell=False,
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        return (exc.stderr or exc.stdout or f"exit code {exc.returncode}").strip()
    except OSError as exc:
        return str(exc)
    return ""
