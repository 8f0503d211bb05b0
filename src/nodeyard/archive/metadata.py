"""Workspace metadata document (``project.json`` inside an archive).

The document is canonical JSON: keys sorted, two-space indent, UTF-8, one
trailing newline. Node order and file order follow the workspace, so the same
workspace always serialises to the same bytes.

Any structural problem while parsing raises ``ArchiveFormatError``; a missing
or malformed document is how a non-workspace archive is recognised.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from nodeyard.errors import ArchiveFormatError
from nodeyard.frameworks import CodeLanguage, Framework
from nodeyard.models import (
    SCHEMA_VERSION,
    CanvasState,
    Node,
    NodeKind,
    Point,
    ProjectFile,
    Workspace,
    validate_relative_path,
)

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS: frozenset[str] = frozenset({SCHEMA_VERSION})


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def workspace_to_dict(ws: Workspace) -> dict[str, Any]:
    return {
        "version": ws.version,
        "name": ws.name,
        "created": _format_time(ws.created),
        "modified": _format_time(ws.modified),
        "canvas": {
            "offset_x": ws.canvas.offset_x,
            "offset_y": ws.canvas.offset_y,
            "scale": ws.canvas.scale,
        },
        "nodes": [_node_to_dict(n) for n in ws.nodes],
    }


def _node_to_dict(node: Node) -> dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "kind": node.kind.value,
        "position": {"x": node.position.x, "y": node.position.y},
        "framework": node.framework.value,
        "connections": list(node.connections),
        "environment_manifest": node.environment_manifest,
        "selected_file_id": node.selected_file_id,
        "files": [
            {
                "id": f.id,
                "path": f.path,
                "name": f.name,
                "content": f.content,
                "language": f.language.value,
            }
            for f in node.files
        ],
    }


def dump_workspace(ws: Workspace) -> str:
    return json.dumps(workspace_to_dict(ws), sort_keys=True, indent=2, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def load_workspace(text: str | bytes) -> Workspace:
    """Parse a metadata document.

    Raises:
        ArchiveFormatError: If the document is not valid workspace metadata.
    """
    try:
        data = json.loads(text)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ArchiveFormatError(f"Workspace metadata is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ArchiveFormatError("Workspace metadata must be a JSON object")

    try:
        return _workspace_from_dict(data)
    except ArchiveFormatError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise ArchiveFormatError(f"Malformed workspace metadata: {exc!r}") from exc


def _workspace_from_dict(data: dict[str, Any]) -> Workspace:
    version = _require(data, "version", str)
    if version not in SUPPORTED_VERSIONS:
        raise ArchiveFormatError(
            f"Unsupported workspace schema version '{version}' "
            f"(supported: {', '.join(sorted(SUPPORTED_VERSIONS))})"
        )

    canvas_raw = _require(data, "canvas", dict)
    canvas = CanvasState(
        offset_x=_number(canvas_raw, "offset_x"),
        offset_y=_number(canvas_raw, "offset_y"),
        scale=_number(canvas_raw, "scale"),
    )
    if canvas.scale <= 0:
        raise ArchiveFormatError(f"Canvas scale must be positive, got {canvas.scale}")

    nodes = [_node_from_dict(raw) for raw in _require(data, "nodes", list)]

    ids = [n.id for n in nodes]
    if len(set(ids)) != len(ids):
        raise ArchiveFormatError("Duplicate node ids in workspace metadata")
    known = set(ids)
    for node in nodes:
        dangling = [t for t in node.connections if t not in known]
        if dangling:
            logger.warning("Dropping connections from %s to unknown nodes: %s", node.id, dangling)
            node.connections = [t for t in node.connections if t in known]

    return Workspace(
        name=_require(data, "name", str),
        nodes=nodes,
        canvas=canvas,
        version=version,
        created=_parse_time(_require(data, "created", str)),
        modified=_parse_time(_require(data, "modified", str)),
    )


def _node_from_dict(raw: Any) -> Node:
    if not isinstance(raw, dict):
        raise ArchiveFormatError("Each node entry must be a JSON object")

    node_id = _require(raw, "id", str)
    position = _require(raw, "position", dict)
    files = [_file_from_dict(f) for f in _require(raw, "files", list)]
    if not files:
        raise ArchiveFormatError(f"Node '{node_id}' has no files")

    connections: list[str] = []
    for target in _require(raw, "connections", list):
        if not isinstance(target, str):
            raise ArchiveFormatError(f"Node '{node_id}' has a non-string connection id")
        if target not in connections:
            connections.append(target)

    selected = raw.get("selected_file_id")
    if selected is not None and not any(f.id == selected for f in files):
        raise ArchiveFormatError(
            f"Node '{node_id}' selects file '{selected}' which is not in its file list"
        )

    return Node(
        id=node_id,
        name=_require(raw, "name", str),
        kind=_enum(NodeKind, raw, "kind"),
        framework=_enum(Framework, raw, "framework"),
        position=Point(x=_number(position, "x"), y=_number(position, "y")),
        files=files,
        selected_file_id=selected,
        environment_manifest=_require(raw, "environment_manifest", str),
        connections=connections,
    )


def _file_from_dict(raw: Any) -> ProjectFile:
    if not isinstance(raw, dict):
        raise ArchiveFormatError("Each file entry must be a JSON object")
    try:
        path = validate_relative_path(_require(raw, "path", str))
    except ValueError as exc:
        raise ArchiveFormatError(str(exc)) from exc
    return ProjectFile(
        id=_require(raw, "id", str),
        path=path,
        name=_require(raw, "name", str),
        content=_require(raw, "content", str),
        language=_enum(CodeLanguage, raw, "language"),
    )


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _require(data: dict[str, Any], key: str, kind: type) -> Any:
    if key not in data:
        raise ArchiveFormatError(f"Missing required field '{key}'")
    value = data[key]
    if not isinstance(value, kind):
        raise ArchiveFormatError(
            f"Field '{key}' must be {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ArchiveFormatError(f"Field '{key}' must be a number")
    return float(value)


def _enum(enum_cls: type, data: dict[str, Any], key: str) -> Any:
    value = _require(data, key, str)
    try:
        return enum_cls(value)
    except ValueError:
        raise ArchiveFormatError(f"Unknown {key} '{value}'") from None


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_time(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ArchiveFormatError(f"Invalid timestamp '{value}'") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
