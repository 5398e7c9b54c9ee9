"""Pytest configuration and fixtures for knowgraph tests."""

from pathlib import Path
from typing import Any, Callable

import pytest

from knowgraph.graph.models import Edge, Node
from knowgraph.graph.snapshot import save_snapshot
from knowgraph.graph.store import GraphStore


def make_node(node_id: str, content: Any = None, node_type: str = "concept", **kwargs: Any) -> Node:
    """Build a node with sensible defaults."""
    return Node(
        id=node_id,
        content=content if content is not None else f"content of {node_id}",
        node_type=node_type,
        **kwargs,
    )


def build_store(node_ids: list[str], edges: list[tuple[str, str]], edge_type: str = "links") -> GraphStore:
    """Build a store from node ids and (from, to) pairs."""
    store = GraphStore()
    for node_id in node_ids:
        store.add_node(make_node(node_id))
    for from_id, to_id in edges:
        store.add_edge(Edge(from_id=from_id, to_id=to_id, edge_type=edge_type))
    return store


@pytest.fixture
def node_factory() -> Callable[..., Node]:
    """Return the node builder."""
    return make_node


@pytest.fixture
def graph_builder() -> Callable[[list[str], list[tuple[str, str]]], GraphStore]:
    """Return the store builder."""
    return build_store


@pytest.fixture
def store() -> GraphStore:
    """Create an empty graph store."""
    return GraphStore()


@pytest.fixture
def chain_store() -> GraphStore:
    """A -> B -> C -> D with no branching."""
    return build_store(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("C", "D")])


@pytest.fixture
def triangles_store() -> GraphStore:
    """Two disjoint, fully connected triangles."""
    return build_store(
        ["a1", "a2", "a3", "b1", "b2", "b3"],
        [
            ("a1", "a2"), ("a2", "a3"), ("a3", "a1"),
            ("b1", "b2"), ("b2", "b3"), ("b3", "b1"),
        ],
    )


@pytest.fixture
def hub_store() -> GraphStore:
    """A hub with edges to six leaves."""
    leaves = [f"leaf{i}" for i in range(1, 7)]
    return build_store(["hub"] + leaves, [("hub", leaf) for leaf in leaves])


@pytest.fixture
def star_store() -> GraphStore:
    """A centre linking to four leaves."""
    return build_store(
        ["center", "l1", "l2", "l3", "l4"],
        [("center", "l1"), ("center", "l2"), ("center", "l3"), ("center", "l4")],
    )


@pytest.fixture
def snapshot_file(tmp_path: Path, chain_store: GraphStore) -> Path:
    """Write the chain graph to a snapshot file."""
    path = tmp_path / "graph.json"
    save_snapshot(chain_store.export(), path)
    return path
