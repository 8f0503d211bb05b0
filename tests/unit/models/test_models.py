"""Tests for nodes, project files and the workspace aggregate."""

from __future__ import annotations

import pytest

from nodeyard.errors import NodeNotFoundError
from nodeyard.frameworks import CodeLanguage, Framework
from nodeyard.models import (
    Connection,
    Node,
    NodeKind,
    ProjectFile,
    Workspace,
    sanitize_component,
    validate_relative_path,
)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("My App", "My App"),
        ("a/b\\c", "a_b_c"),
        ("what?*", "what__"),
        ("..", "untitled"),
        ("  .hidden.  ", "hidden"),
        ("", "untitled"),
    ],
)
def test_sanitize_component(raw: str, expected: str) -> None:
    assert sanitize_component(raw) == expected


def test_validate_relative_path_normalises() -> None:
    assert validate_relative_path("src\\app\\main.py") == "src/app/main.py"
    assert validate_relative_path("./src//main.py") == "src/main.py"


@pytest.mark.parametrize("bad", ["", "   ", "/etc/passwd", "../outside.txt", "src/../../x", "C:/x"])
def test_validate_relative_path_rejects(bad: str) -> None:
    with pytest.raises(ValueError):
        validate_relative_path(bad)


# ---------------------------------------------------------------------------
# ProjectFile
# ---------------------------------------------------------------------------


def test_project_file_create_infers_language_and_name() -> None:
    f = ProjectFile.create("src/components/App.tsx", content="x")
    assert f.name == "App.tsx"
    assert f.language is CodeLanguage.TYPESCRIPT
    assert f.content == "x"
    assert len(f.id) == 32


def test_project_file_dockerfile_language() -> None:
    assert ProjectFile.create("Dockerfile").language is CodeLanguage.DOCKERFILE


# ---------------------------------------------------------------------------
# Node
# ---------------------------------------------------------------------------


def test_node_create_synthesizes_entry_file() -> None:
    node = Node.create("Backend API", kind=NodeKind.BACKEND, framework=Framework.FASTAPI)
    assert len(node.files) == 1
    entry = node.files[0]
    assert entry.path == "main.py"
    assert entry.language is CodeLanguage.PYTHON
    assert 'FastAPI(title="Backend API")' in entry.content
    assert node.selected_file_id == entry.id
    assert node.project_path is None


def test_node_defaults_to_swift() -> None:
    node = Node.create("Thing")
    assert node.framework is Framework.SWIFT
    assert node.entry_file().path == "Sources/main.swift"


def test_ensure_entry_file_is_idempotent() -> None:
    node = Node.create("Svc", framework=Framework.GO)
    first = node.ensure_entry_file()
    second = node.ensure_entry_file()
    assert first is second
    assert len(node.files) == 1


def test_ensure_entry_file_after_framework_change_inserts_first() -> None:
    node = Node.create("Svc", framework=Framework.GO)
    node.framework = Framework.RUST
    entry = node.ensure_entry_file()
    assert node.files[0] is entry
    assert entry.path == "src/main.rs"
    assert [f.path for f in node.files] == ["src/main.rs", "main.go"]


def test_add_file_replaces_same_path_and_keeps_selection() -> None:
    node = Node.create("Svc", framework=Framework.FLASK)
    old = node.entry_file()
    replacement = ProjectFile.create("app.py", content="print('new')")
    node.add_file(replacement)
    assert len(node.files) == 1
    assert node.selected_file_id == replacement.id
    assert node.file_by_id(old.id) is None


def test_remove_last_file_is_refused() -> None:
    node = Node.create("Solo", framework=Framework.GO)
    with pytest.raises(ValueError, match="at least one file"):
        node.remove_file(node.files[0].id)


def test_remove_selected_file_clears_selection() -> None:
    node = Node.create("Svc", framework=Framework.FLASK)
    extra = node.add_file(ProjectFile.create("util.py"))
    node.selected_file_id = extra.id
    node.remove_file(extra.id)
    assert node.selected_file_id is None
    assert node.selected_file() is node.entry_file()


def test_project_directory_name_uses_id_prefix() -> None:
    node = Node.create("My/App")
    assert node.project_directory_name == f"My_App-{node.id[:8]}"


def test_node_copy_is_deep() -> None:
    node = Node.create("Svc", framework=Framework.FLASK)
    clone = node.copy()
    clone.files[0].content = "changed"
    clone.connections.append("x")
    assert node.files[0].content != "changed"
    assert node.connections == []


def test_needs_environment_follows_framework() -> None:
    assert Node.create("a", framework=Framework.DJANGO).needs_environment
    assert Node.create("b", framework=Framework.VUE).needs_environment
    assert not Node.create("c", framework=Framework.TERRAFORM).needs_environment


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


def test_workspace_defaults() -> None:
    ws = Workspace()
    assert ws.name == "Untitled Project"
    assert ws.version == "2.0"
    assert ws.nodes == []
    assert ws.canvas.scale == 1.0


def test_workspace_node_lookup_raises_not_found() -> None:
    ws = Workspace()
    with pytest.raises(NodeNotFoundError) as excinfo:
        ws.node("missing")
    assert excinfo.value.node_id == "missing"
    assert isinstance(excinfo.value, KeyError)


def test_workspace_connections_are_derived_from_nodes() -> None:
    a, b = Node.create("a"), Node.create("b")
    a.connections.append(b.id)
    ws = Workspace(nodes=[a, b])
    assert ws.connections() == {Connection(a.id, b.id)}
