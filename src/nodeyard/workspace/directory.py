"""Project Directory Service — one on-disk project tree per node.

Layout:
  <projects_dir>/<workspace name>/<node name>-<id prefix>/

``project_path()`` is pure so the orchestrator can plan many nodes' work
before touching the disk. Every other method performs blocking I/O and is
meant to run on a worker thread against a node snapshot.

Deletion is always explicit (``delete_file`` / ``remove_project``);
``save_all_files`` only ever creates or overwrites tracked files.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

from nodeyard.archive.exclusions import EXCLUDED_DIRS
from nodeyard.frameworks import CodeLanguage, spec_for
from nodeyard.models import Node, ProjectFile, sanitize_component
from nodeyard.workspace.writer import confine_to_root, write_atomic

logger = logging.getLogger(__name__)

_PYTHON_GITIGNORE = """\
__pycache__/
*.py[cod]
*$py.class
*.so
.Python
venv/
env/
ENV/
.pytest_cache/
.mypy_cache/
.coverage
htmlcov/
dist/
build/
*.egg-info/
"""

_NODE_GITIGNORE = """\
node_modules/
dist/
build/
.env
*.log
"""


class ProjectDirectoryService:
    """Translate nodes into project directories and keep them in sync."""

    def __init__(self, projects_dir: Path | str) -> None:
        self.projects_dir = Path(projects_dir).expanduser()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def workspace_dir(self, workspace_name: str) -> Path:
        return self.projects_dir / sanitize_component(workspace_name)

    def project_path(self, node: Node, workspace_name: str) -> Path:
        """Return the project root for *node*. No I/O."""
        return self.workspace_dir(workspace_name) / node.project_directory_name

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def create_project_structure(self, node: Node, workspace_name: str) -> Path:
        """Create the project root and the language skeleton for *node*.

        Idempotent: existing directories are kept and skeleton files are only
        written when absent.

        Raises:
            OSError: If the directory or a skeleton file cannot be created.
        """
        root = self.project_path(node, workspace_name)
        root.mkdir(parents=True, exist_ok=True)

        language = spec_for(node.framework).language
        if language is CodeLanguage.PYTHON:
            self._python_skeleton(node, root)
        elif language in (CodeLanguage.JAVASCRIPT, CodeLanguage.TYPESCRIPT):
            self._javascript_skeleton(node, root, language)
        elif language is CodeLanguage.SWIFT:
            self._swift_skeleton(node, root)
        elif language in (CodeLanguage.HTML, CodeLanguage.CSS):
            self._web_skeleton(node, root)
        else:
            self._basic_skeleton(node, root)

        logger.debug("Project structure ready for %s at %s", node.name, root)
        return root

    def _python_skeleton(self, node: Node, root: Path) -> None:
        for sub in ("src", "tests", "docs"):
            (root / sub).mkdir(exist_ok=True)
        _write_if_missing(root / "src" / "__init__.py", "")
        _write_if_missing(root / "tests" / "__init__.py", "")
        if node.environment_manifest.strip():
            _write_if_missing(root / "requirements.txt", node.environment_manifest)
        _write_if_missing(
            root / "README.md",
            f"# {node.name}\n\n"
            f"{node.kind.value} project\n\n"
            "## Setup\n\n"
            "```bash\n"
            "python3 -m venv venv\n"
            "source venv/bin/activate\n"
            "pip install -r requirements.txt\n"
            "```\n\n"
            "## Run\n\n"
            "```bash\n"
            f"python {node.entry_path}\n"
            "```\n",
        )
        _write_if_missing(root / ".gitignore", _PYTHON_GITIGNORE)

    def _javascript_skeleton(self, node: Node, root: Path, language: CodeLanguage) -> None:
        (root / "src").mkdir(exist_ok=True)
        typescript = language is CodeLanguage.TYPESCRIPT
        package = {
            "name": node.project_directory_name.lower(),
            "version": "1.0.0",
            "description": node.name,
            "main": node.entry_path,
            "scripts": {
                "start": f"ts-node {node.entry_path}" if typescript else f"node {node.entry_path}",
                "build": "tsc" if typescript else "echo 'No build step needed'",
            },
            "keywords": [],
            "author": "",
            "license": "ISC",
        }
        _write_if_missing(root / "package.json", json.dumps(package, indent=2) + "\n")
        _write_if_missing(root / ".gitignore", _NODE_GITIGNORE)

    def _swift_skeleton(self, node: Node, root: Path) -> None:
        for sub in ("Sources", "Tests"):
            (root / sub).mkdir(exist_ok=True)
        target = "".join(ch for ch in sanitize_component(node.name) if ch.isalnum()) or "App"
        _write_if_missing(
            root / "Package.swift",
            "// swift-tools-version: 5.9\n"
            "import PackageDescription\n\n"
            "let package = Package(\n"
            f'    name: "{target}",\n'
            "    platforms: [.macOS(.v13), .iOS(.v16)],\n"
            f'    products: [.executable(name: "{target}", targets: ["{target}"])],\n'
            f'    targets: [.executableTarget(name: "{target}", path: "Sources")]\n'
            ")\n",
        )
        _write_if_missing(
            root / "README.md",
            f"# {node.name}\n\n{node.kind.value} project\n\n"
            "## Build\n\n```bash\nswift build\n```\n\n"
            "## Run\n\n```bash\nswift run\n```\n",
        )

    def _web_skeleton(self, node: Node, root: Path) -> None:
        for sub in ("css", "js", "images"):
            (root / sub).mkdir(exist_ok=True)
        _write_if_missing(
            root / "index.html",
            "<!DOCTYPE html>\n"
            '<html lang="en">\n'
            "<head>\n"
            '    <meta charset="UTF-8">\n'
            f"    <title>{node.name}</title>\n"
            '    <link rel="stylesheet" href="css/style.css">\n'
            "</head>\n"
            "<body>\n"
            f"    <h1>{node.name}</h1>\n"
            '    <script src="js/script.js"></script>\n'
            "</body>\n"
            "</html>\n",
        )

    def _basic_skeleton(self, node: Node, root: Path) -> None:
        (root / "src").mkdir(exist_ok=True)
        language = spec_for(node.framework).language
        _write_if_missing(
            root / "README.md",
            f"# {node.name}\n\n{node.kind.value} project\n\nLanguage: {language.value}\n",
        )

    # ------------------------------------------------------------------
    # File sync
    # ------------------------------------------------------------------

    def save_all_files(self, node: Node, project_path: Path) -> int:
        """Write every tracked file of *node* under *project_path*.

        Files on disk that *node* does not track are left alone. Each file is
        replaced atomically; the first failure propagates.

        Returns:
            Number of files written.
        """
        for file in node.files:
            target = confine_to_root(project_path, file.path)
            write_atomic(target, file.content)
        logger.debug("Flushed %d files for %s", len(node.files), node.name)
        return len(node.files)

    def read_all_files(self, node: Node, project_path: Path) -> list[ProjectFile]:
        """Return copies of *node*'s files with content re-read from disk.

        Files missing on disk keep their in-memory content.
        """
        refreshed: list[ProjectFile] = []
        for file in node.copy().files:
            target = confine_to_root(project_path, file.path)
            if target.is_file():
                file.content = target.read_text(encoding="utf-8", errors="replace")
            refreshed.append(file)
        return refreshed

    def list_project_files(self, project_path: Path) -> list[str]:
        """Relative POSIX paths of all files under *project_path*, excluded dirs skipped."""
        if not project_path.is_dir():
            return []
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(project_path):
            dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
            rel_dir = Path(dirpath).relative_to(project_path)
            for name in sorted(filenames):
                found.append((rel_dir / name).as_posix())
        return found

    # ------------------------------------------------------------------
    # Explicit deletion
    # ------------------------------------------------------------------

    def delete_file(self, node: Node, file: ProjectFile, workspace_name: str) -> bool:
        """Delete one tracked file from disk. Returns False if it was not there."""
        target = confine_to_root(self.project_path(node, workspace_name), file.path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def move_project(self, old_root: Path, new_root: Path) -> bool:
        """Move a project directory after a rename. Nothing is deleted.

        Returns False (and leaves both paths alone) when *old_root* is missing
        or *new_root* already exists.
        """
        if not old_root.is_dir() or new_root.exists():
            return False
        new_root.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(old_root), str(new_root))
        logger.info("Moved project directory %s -> %s", old_root, new_root)
        return True

    def remove_project(self, node: Node, workspace_name: str) -> bool:
        """Delete *node*'s whole project directory. Returns False if absent."""
        root = self.project_path(node, workspace_name)
        if not root.exists():
            return False
        shutil.rmtree(root)
        logger.info("Removed project directory %s", root)
        return True

    # ------------------------------------------------------------------
    # External tools
    # ------------------------------------------------------------------

    def open_in_file_browser(self, node: Node, workspace_name: str) -> bool:
        """Open the project directory in the platform file browser.

        Best effort: failures are logged and reported as False.
        """
        root = self.project_path(node, workspace_name)
        if not root.is_dir():
            logger.warning("Cannot open %s: directory does not exist", root)
            return False
        try:
            subprocess.Popen(
                [_file_browser_command(), str(root)],
                shell=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("Could not open file browser for %s: %s", root, exc)
            return False
        return True


def _file_browser_command() -> str:
    if sys.platform == "darwin":
        return "open"
    if sys.platform.startswith("win"):
        return "explorer"
    return "xdg-open"


def _write_if_missing(path: Path, content: str) -> None:
    if not path.exists():
        write_atomic(path, content)
