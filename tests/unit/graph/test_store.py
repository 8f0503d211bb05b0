"""Tests for the node graph store."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from nodeyard.errors import NodeNotFoundError, OwnershipError
from nodeyard.frameworks import Framework
from nodeyard.graph import NodeGraphStore
from nodeyard.models import Connection, Node, Workspace


def _store_with(*names: str) -> tuple[NodeGraphStore, list[Node]]:
    store = NodeGraphStore()
    nodes = [Node.create(n) for n in names]
    for node in nodes:
        store.add_node(node)
    return store, nodes


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


def test_add_node_and_lookup() -> None:
    store, (a,) = _store_with("a")
    assert store.node(a.id) is a
    assert store.nodes == [a]


def test_add_duplicate_id_rejected() -> None:
    store, (a,) = _store_with("a")
    with pytest.raises(ValueError, match="already exists"):
        store.add_node(a.copy())


def test_get_node_copy_is_detached() -> None:
    store, (a,) = _store_with("a")
    clone = store.get_node_copy(a.id)
    clone.name = "changed"
    assert store.node(a.id).name == "a"


def test_update_node_returns_previous() -> None:
    store, (a,) = _store_with("a")
    replacement = a.copy()
    replacement.framework = Framework.GO
    previous = store.update_node(replacement)
    assert previous is a
    assert store.node(a.id).framework is Framework.GO


def test_update_unknown_node_raises() -> None:
    store = NodeGraphStore()
    with pytest.raises(NodeNotFoundError):
        store.update_node(Node.create("ghost"))


def test_remove_node_cascades_connections_and_selection() -> None:
    store, (a, b, c) = _store_with("a", "b", "c")
    store.add_connection(a.id, b.id)
    store.add_connection(c.id, b.id)
    store.add_connection(b.id, c.id)
    store.select_node(b.id)

    removed = store.remove_node(b.id)

    assert removed is b
    assert store.connections() == set()
    assert store.selected_node is None
    assert [n.id for n in store.nodes] == [a.id, c.id]


def test_remove_unknown_node_raises() -> None:
    store = NodeGraphStore()
    with pytest.raises(NodeNotFoundError):
        store.remove_node("nope")


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


def test_add_connection_is_idempotent() -> None:
    store, (a, b) = _store_with("a", "b")
    store.add_connection(a.id, b.id)
    store.add_connection(a.id, b.id)
    assert store.node(a.id).connections == [b.id]
    assert store.connections() == {Connection(a.id, b.id)}


def test_connections_are_directed() -> None:
    store, (a, b) = _store_with("a", "b")
    store.add_connection(a.id, b.id)
    store.add_connection(b.id, a.id)
    assert store.connections() == {Connection(a.id, b.id), Connection(b.id, a.id)}


def test_add_connection_to_unknown_node_raises() -> None:
    store, (a,) = _store_with("a")
    with pytest.raises(NodeNotFoundError):
        store.add_connection(a.id, "missing")
    assert store.node(a.id).connections == []


def test_remove_missing_connection_is_noop() -> None:
    store, (a, b) = _store_with("a", "b")
    before = store.workspace.modified
    store.remove_connection(a.id, b.id)
    store.remove_connection("missing", b.id)
    assert store.connections() == set()
    assert store.workspace.modified == before


def test_remove_connection() -> None:
    store, (a, b) = _store_with("a", "b")
    store.add_connection(a.id, b.id)
    store.remove_connection(a.id, b.id)
    store.remove_connection(a.id, b.id)
    assert store.connections() == set()


# ---------------------------------------------------------------------------
# Canvas / snapshot / replace
# ---------------------------------------------------------------------------


def test_set_canvas_rejects_non_positive_scale() -> None:
    store = NodeGraphStore()
    with pytest.raises(ValueError):
        store.set_canvas(0, 0, 0)
    store.set_canvas(10, -5, 2.5)
    assert store.workspace.canvas.scale == 2.5


def test_snapshot_is_deep_copy() -> None:
    store, (a,) = _store_with("a")
    snap = store.snapshot()
    snap.nodes[0].name = "changed"
    assert store.node(a.id).name == "a"


def test_mark_saved_sets_modified() -> None:
    store, _ = _store_with("a")
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    store.mark_saved(stamp)
    assert store.workspace.modified == stamp


def test_replace_workspace_clears_selection() -> None:
    store, (a,) = _store_with("a")
    store.select_node(a.id)
    store.replace_workspace(Workspace(name="Other"))
    assert store.workspace.name == "Other"
    assert store.selected_node is None


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


def _call_in_thread(fn) -> BaseException | None:
    caught: list[BaseException] = []

    def _target() -> None:
        try:
            fn()
        except BaseException as exc:  # noqa: BLE001
            caught.append(exc)

    worker = threading.Thread(target=_target)
    worker.start()
    worker.join()
    return caught[0] if caught else None


def test_mutation_from_other_thread_is_rejected() -> None:
    store, (a,) = _store_with("a")
    error = _call_in_thread(lambda: store.add_node(Node.create("b")))
    assert isinstance(error, OwnershipError)
    assert len(store.nodes) == 1


def test_reads_from_other_thread_are_allowed() -> None:
    store, (a,) = _store_with("a")
    error = _call_in_thread(lambda: store.get_node_copy(a.id))
    assert error is None


def test_bind_owner_moves_ownership() -> None:
    store = NodeGraphStore()

    def _claim_and_mutate() -> None:
        store.bind_owner()
        store.add_node(Node.create("from worker"))

    assert _call_in_thread(_claim_and_mutate) is None
    with pytest.raises(OwnershipError):
        store.add_node(Node.create("from main"))
