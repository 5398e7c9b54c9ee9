"""Tests for Louvain community detection."""

from typing import Callable

import numpy as np
import pytest

from knowgraph.analysis.community import LouvainDetector
from knowgraph.core.config import CommunityConfig
from knowgraph.graph.models import Edge, Node
from knowgraph.graph.store import GraphStore


BRIDGED_TRIANGLES = (
    ["a1", "a2", "a3", "b1", "b2", "b3"],
    [
        ("a1", "a2"), ("a2", "a3"), ("a1", "a3"),
        ("b1", "b2"), ("b2", "b3"), ("b1", "b3"),
        ("a3", "b1"),
    ],
)


@pytest.fixture
def bridged_store(graph_builder: Callable[..., GraphStore]) -> GraphStore:
    """Two triangles joined by the edge a3 -> b1."""
    return graph_builder(*BRIDGED_TRIANGLES)


def detect(store: GraphStore, **config: object) -> list:
    detector = LouvainDetector(CommunityConfig(**config))
    return detector.detect(store.get_all_nodes(), store.get_all_edges())


class TestCommunities:
    """Tests for the detected partition."""

    def test_bridged_triangles_split(self, bridged_store: GraphStore) -> None:
        """Test that a single bridge does not merge two dense groups."""
        clusters = detect(bridged_store)

        assert [c.nodes for c in clusters] == [["a1", "a2", "a3"], ["b1", "b2", "b3"]]
        assert [c.id for c in clusters] == ["cluster_000", "cluster_001"]
        assert all(c.algorithm == "community" for c in clusters)

    def test_total_modularity_positive(self, bridged_store: GraphStore) -> None:
        """Test the modularity of the two-community partition."""
        clusters = detect(bridged_store)

        total = sum(c.modularity for c in clusters)

        assert total > 0
        assert total == pytest.approx(5 / 14)

    def test_coherence_and_centroid(self, bridged_store: GraphStore) -> None:
        """Test internal weight share and the best-connected member."""
        clusters = detect(bridged_store)

        assert [c.centroid for c in clusters] == ["a3", "b1"]
        assert all(c.coherence == pytest.approx(6 / 7) for c in clusters)

    def test_isolated_node_alone(self, bridged_store: GraphStore, node_factory: Callable[..., Node]) -> None:
        """Test that an unconnected node forms its own community."""
        bridged_store.add_node(node_factory("loner"))

        clusters = detect(bridged_store)

        assert len(clusters) == 3
        assert clusters[-1].nodes == ["loner"]
        assert clusters[-1].coherence == 1.0
        assert clusters[-1].modularity == 0.0

    def test_every_node_assigned_once(self, hub_store: GraphStore) -> None:
        """Test that the partition covers each node exactly once."""
        clusters = detect(hub_store)

        members = [node_id for c in clusters for node_id in c.nodes]
        assert sorted(members) == sorted(n.id for n in hub_store.get_all_nodes())

    def test_chain_halves(self, chain_store: GraphStore) -> None:
        """Test that a four-node path splits into its two halves."""
        clusters = detect(chain_store)

        assert [c.nodes for c in clusters] == [["A", "B"], ["C", "D"]]
        assert sum(c.modularity for c in clusters) == pytest.approx(1 / 6)


class TestConfiguration:
    """Tests for resolution, size filter and seeding."""

    def test_high_resolution_keeps_singletons(self, bridged_store: GraphStore) -> None:
        """Test that a large resolution makes every merge unprofitable."""
        clusters = detect(bridged_store, resolution=10.0)

        assert [c.nodes for c in clusters] == [[n] for n in BRIDGED_TRIANGLES[0]]

    def test_min_community_size(self, bridged_store: GraphStore, node_factory: Callable[..., Node]) -> None:
        """Test that small communities are not reported."""
        bridged_store.add_node(node_factory("loner"))

        clusters = detect(bridged_store, min_community_size=2)

        assert [c.id for c in clusters] == ["cluster_000", "cluster_001"]
        assert all(c.size == 3 for c in clusters)

    def test_same_seed_same_result(self, hub_store: GraphStore) -> None:
        """Test that detection is deterministic for a fixed seed."""
        first = detect(hub_store, random_seed=7)
        second = detect(hub_store, random_seed=7)

        assert [c.nodes for c in first] == [c.nodes for c in second]

    def test_invalid_config_normalized(self) -> None:
        """Test that a bad resolution falls back to the default."""
        detector = LouvainDetector(CommunityConfig(resolution=-2))

        assert detector.config.resolution == 1.0


class TestDegenerateInput:
    """Tests for empty, edgeless and dangling input."""

    def test_no_nodes(self) -> None:
        """Test that an empty graph has no communities."""
        assert LouvainDetector().detect([], []) == []

    def test_edgeless_graph(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that nodes without edges stay apart with zero modularity."""
        store = graph_builder(["x", "y", "z"], [])

        clusters = detect(store)

        assert [c.nodes for c in clusters] == [["x"], ["y"], ["z"]]
        assert all(c.modularity == 0.0 for c in clusters)

    def test_dangling_edges_ignored(self) -> None:
        """Test that edges to unknown nodes are skipped."""
        nodes = [Node(id="a", content="alpha", node_type="t")]
        edges = [Edge(from_id="a", to_id="ghost", edge_type="t")]

        clusters = LouvainDetector().detect(nodes, edges)

        assert [c.nodes for c in clusters] == [["a"]]

    def test_empty_adjacency(self) -> None:
        """Test partitioning a zero-sized matrix."""
        labels = LouvainDetector().partition(np.zeros((0, 0)))

        assert labels.shape == (0,)
