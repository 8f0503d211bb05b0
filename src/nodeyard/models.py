"""Domain models for nodes, their project files and the workspace aggregate."""

from __future__ import annotations

import copy
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath

from nodeyard.errors import NodeNotFoundError
from nodeyard.frameworks import (
    CodeLanguage,
    Framework,
    needs_environment,
    render_template,
    spec_for,
)

SCHEMA_VERSION = "2.0"

# Characters that may not appear in a single path component on any platform.
_UNSAFE_COMPONENT_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_component(value: str) -> str:
    """Make *value* safe to use as one directory name.

    Path separators, colons and other reserved characters become ``_``;
    leading/trailing whitespace and dots are stripped so the result can never
    be ``.``/``..`` or a hidden name.
    """
    cleaned = _UNSAFE_COMPONENT_RE.sub("_", value).strip().strip(".").strip()
    return cleaned or "untitled"


def validate_relative_path(path: str) -> str:
    """Normalise a project-relative file path to POSIX form.

    Raises:
        ValueError: If *path* is empty, absolute, or escapes the project root.
    """
    raw = path.replace("\\", "/").strip()
    if not raw:
        raise ValueError("File path must not be empty")
    p = PurePosixPath(raw)
    if p.is_absolute() or re.match(r"^[A-Za-z]:", raw):
        raise ValueError(f"File path must be relative to the project root: '{path}'")
    parts = [part for part in p.parts if part not in ("", ".")]
    if not parts or ".." in parts:
        raise ValueError(f"File path escapes the project root: '{path}'")
    return "/".join(parts)


class NodeKind(str, Enum):
    """Canvas category of a node. Cosmetic only."""

    MACOS_APP = "macos_app"
    IPHONE_APP = "iphone_app"
    MOBILE_APP = "mobile_app"
    WEBSITE = "website"
    SERVICE = "service"
    BACKEND = "backend"
    AWS_BACKEND = "aws_backend"
    CUSTOM = "custom"


@dataclass
class Point:
    x: float = 0.0
    y: float = 0.0


@dataclass
class ProjectFile:
    id: str
    path: str
    name: str
    content: str = ""
    language: CodeLanguage = CodeLanguage.TEXT

    @classmethod
    def create(
        cls,
        path: str,
        content: str = "",
        language: CodeLanguage | None = None,
    ) -> ProjectFile:
        rel = validate_relative_path(path)
        return cls(
            id=new_id(),
            path=rel,
            name=PurePosixPath(rel).name,
            content=content,
            language=language or CodeLanguage.from_path(rel),
        )


@dataclass(frozen=True)
class Connection:
    """Directed edge between two nodes."""

    source: str
    target: str


@dataclass
class Node:
    """One independent code project on the canvas.

    Invariants: ``files`` is never empty, one file sits at the framework's
    entry path, and ``selected_file_id`` is either ``None`` or the id of a
    file in ``files``.
    """

    id: str
    name: str
    kind: NodeKind
    framework: Framework
    position: Point = field(default_factory=Point)
    files: list[ProjectFile] = field(default_factory=list)
    selected_file_id: str | None = None
    project_path: str | None = None
    environment_path: str | None = None
    environment_manifest: str = ""
    connections: list[str] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        name: str,
        kind: NodeKind = NodeKind.CUSTOM,
        framework: Framework = Framework.SWIFT,
        position: Point | None = None,
    ) -> Node:
        node = cls(
            id=new_id(),
            name=name,
            kind=kind,
            framework=framework,
            position=position or Point(),
        )
        entry = node.ensure_entry_file()
        node.selected_file_id = entry.id
        return node

    # ------------------------------------------------------------------
    # Framework-derived properties
    # ------------------------------------------------------------------

    @property
    def entry_path(self) -> str:
        return spec_for(self.framework).entry_path

    @property
    def needs_environment(self) -> bool:
        return needs_environment(self.framework)

    @property
    def project_directory_name(self) -> str:
        return f"{sanitize_component(self.name)}-{self.id[:8]}"

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_by_path(self, path: str) -> ProjectFile | None:
        rel = validate_relative_path(path)
        return next((f for f in self.files if f.path == rel), None)

    def file_by_id(self, file_id: str) -> ProjectFile | None:
        return next((f for f in self.files if f.id == file_id), None)

    def entry_file(self) -> ProjectFile | None:
        return self.file_by_path(self.entry_path)

    def ensure_entry_file(self) -> ProjectFile:
        """Return the entry file, creating it from the framework template if missing."""
        existing = self.entry_file()
        if existing is not None:
            return existing
        spec = spec_for(self.framework)
        entry = ProjectFile.create(
            spec.entry_path,
            content=render_template(self.framework, self.name),
            language=spec.language,
        )
        self.files.insert(0, entry)
        return entry

    def selected_file(self) -> ProjectFile | None:
        if self.selected_file_id is not None:
            chosen = self.file_by_id(self.selected_file_id)
            if chosen is not None:
                return chosen
        entry = self.entry_file()
        if entry is not None:
            return entry
        return self.files[0] if self.files else None

    def add_file(self, file: ProjectFile) -> ProjectFile:
        """Add *file*, replacing any existing file at the same path."""
        for i, existing in enumerate(self.files):
            if existing.path == file.path:
                if self.selected_file_id == existing.id:
                    self.selected_file_id = file.id
                self.files[i] = file
                return file
        self.files.append(file)
        return file

    def remove_file(self, file_id: str) -> ProjectFile:
        target = self.file_by_id(file_id)
        if target is None:
            raise KeyError(file_id)
        if len(self.files) == 1:
            raise ValueError(f"Node '{self.name}' must keep at least one file")
        self.files.remove(target)
        if self.selected_file_id == file_id:
            self.selected_file_id = None
        return target

    def copy(self) -> Node:
        return copy.deepcopy(self)


@dataclass
class CanvasState:
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0


@dataclass
class Workspace:
    """The persisted unit: nodes, their connections and the canvas view."""

    name: str = "Untitled Project"
    nodes: list[Node] = field(default_factory=list)
    canvas: CanvasState = field(default_factory=CanvasState)
    version: str = SCHEMA_VERSION
    created: datetime = field(default_factory=utcnow)
    modified: datetime = field(default_factory=utcnow)

    def node(self, node_id: str) -> Node:
        for n in self.nodes:
            if n.id == node_id:
                return n
        raise NodeNotFoundError(node_id)

    def index_of(self, node_id: str) -> int:
        for i, n in enumerate(self.nodes):
            if n.id == node_id:
                return i
        raise NodeNotFoundError(node_id)

    def connections(self) -> set[Connection]:
        return {Connection(n.id, target) for n in self.nodes for target in n.connections}

    def touch(self) -> None:
        self.modified = utcnow()

    def copy(self) -> Workspace:
        return copy.deepcopy(self)
