"""Tests for NODE argument resolution."""

from __future__ import annotations

import pytest

from nodeyard.cli.session import NodeReferenceError, describe, resolve_node
from nodeyard.models import Node


def _node(node_id: str, name: str) -> Node:
    node = Node.create(name)
    node.id = node_id
    return node


NODES = [
    _node("aaaa1111", "Api"),
    _node("aaaa2222", "Web"),
    _node("bbbb3333", "Web"),
    _node("cccc4444", "aaaa1111"),
]


def test_exact_id_wins_over_name() -> None:
    assert resolve_node(NODES, "aaaa1111").name == "Api"


def test_unique_name() -> None:
    assert resolve_node(NODES, "Api").id == "aaaa1111"


def test_unique_id_prefix() -> None:
    assert resolve_node(NODES, "bbbb").id == "bbbb3333"


def test_duplicate_name_is_ambiguous() -> None:
    with pytest.raises(NodeReferenceError) as excinfo:
        resolve_node(NODES, "Web")
    assert excinfo.value.ambiguous
    assert {n.id for n in excinfo.value.matches} == {"aaaa2222", "bbbb3333"}


def test_shared_prefix_is_ambiguous() -> None:
    with pytest.raises(NodeReferenceError) as excinfo:
        resolve_node(NODES, "aaaa")
    assert excinfo.value.ambiguous


def test_no_match() -> None:
    with pytest.raises(NodeReferenceError) as excinfo:
        resolve_node(NODES, "zzz")
    assert not excinfo.value.ambiguous
    assert excinfo.value.available == NODES


def test_empty_reference_matches_nothing() -> None:
    with pytest.raises(NodeReferenceError):
        resolve_node(NODES, "")


def test_describe_uses_short_id() -> None:
    assert describe(_node("0123456789abcdef", "Api")) == "Api (01234567)"
