"""Tests for structural pattern mining."""

from typing import Callable

import pytest

from knowgraph.analysis.patterns import PatternMiner, PatternMiningResult
from knowgraph.core.config import MiningConfig
from knowgraph.graph.models import Edge, Node
from knowgraph.graph.store import GraphStore


def mine(store: GraphStore, **config: object) -> PatternMiningResult:
    miner = PatternMiner(MiningConfig(**config))
    return miner.mine(store.get_all_nodes(), store.get_all_edges())


class TestChains:
    """Tests for chain detection."""

    def test_linear_chain(self, chain_store: GraphStore) -> None:
        """Test that an unbranched path yields one chain in order."""
        result = mine(chain_store, enabled_patterns=("chain",))

        assert result.pattern_count == 1
        pattern = result.patterns[0]
        assert pattern.nodes == ("A", "B", "C", "D")
        assert len(pattern.edges) == 3
        assert pattern.id == "chain-pattern_0001"
        assert pattern.support == 1.0

    def test_chain_capped_by_size(self, chain_store: GraphStore) -> None:
        """Test that chains stop at the size ceiling."""
        result = mine(chain_store, enabled_patterns=("chain",), max_pattern_size=3)

        assert [p.nodes for p in result.patterns] == [("A", "B", "C")]

    def test_branch_breaks_chain(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that a node with two successors ends the chain."""
        store = graph_builder(
            ["a", "b", "c", "d", "e"],
            [("a", "b"), ("b", "c"), ("b", "d"), ("d", "e")],
        )

        result = mine(store, enabled_patterns=("chain",))

        assert result.patterns == []

    def test_short_path_is_not_a_chain(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that two nodes do not form a chain."""
        store = graph_builder(["a", "b"], [("a", "b")])

        assert mine(store, enabled_patterns=("chain",)).patterns == []


class TestHubsAndStars:
    """Tests for hub and star detection."""

    def test_hub_capped_by_size(self, hub_store: GraphStore) -> None:
        """Test that the hub pattern holds the hub and four neighbors."""
        result = mine(hub_store, enabled_patterns=("hub",))

        assert result.pattern_count == 1
        pattern = result.patterns[0]
        assert pattern.nodes[0] == "hub"
        assert pattern.size == 5
        assert pattern.support == pytest.approx(5 / 7)

    def test_outgoing_star(self, star_store: GraphStore) -> None:
        """Test that a centre with four out-edges is a star."""
        result = mine(star_store, enabled_patterns=("star",))

        assert result.pattern_count == 1
        assert result.patterns[0].nodes == ("center", "l1", "l2", "l3", "l4")
        assert "outgoing" in result.patterns[0].description

    def test_incoming_star(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that three in-edges form an incoming star."""
        store = graph_builder(["s1", "s2", "s3", "sink"], [("s1", "sink"), ("s2", "sink"), ("s3", "sink")])

        result = mine(store, enabled_patterns=("star",))

        assert result.pattern_count == 1
        assert result.patterns[0].nodes[0] == "sink"
        assert "incoming" in result.patterns[0].description

    def test_two_out_edges_not_a_star(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test the three-edge minimum."""
        store = graph_builder(["c", "x", "y"], [("c", "x"), ("c", "y")])

        assert mine(store, enabled_patterns=("star",)).patterns == []


class TestCyclesTreesClusters:
    """Tests for cycle, tree and cluster detection."""

    def test_two_triangles_two_cycles(self, triangles_store: GraphStore) -> None:
        """Test that each triangle is reported once."""
        result = mine(triangles_store, enabled_patterns=("cycle",))

        assert [p.nodes for p in result.patterns] == [("a1", "a2", "a3"), ("b1", "b2", "b3")]
        assert all(len(p.edges) == 3 for p in result.patterns)

    def test_two_node_cycle_ignored(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that reciprocal edges are not a cycle."""
        store = graph_builder(["x", "y"], [("x", "y"), ("y", "x")])

        assert mine(store, enabled_patterns=("cycle",)).patterns == []

    def test_cycle_longer_than_cap(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that cycles above the size ceiling are not reported."""
        ids = ["c1", "c2", "c3", "c4"]
        store = graph_builder(ids, [("c1", "c2"), ("c2", "c3"), ("c3", "c4"), ("c4", "c1")])

        assert mine(store, enabled_patterns=("cycle",), max_pattern_size=3).patterns == []

    def test_trees_from_chain(self, chain_store: GraphStore) -> None:
        """Test breadth-first trees of at least three nodes."""
        result = mine(chain_store, enabled_patterns=("tree",))

        assert [p.nodes for p in result.patterns] == [("A", "B", "C", "D"), ("B", "C", "D")]

    def test_dense_clusters(self, triangles_store: GraphStore) -> None:
        """Test that each triangle grows into a cluster."""
        result = mine(triangles_store, enabled_patterns=("cluster",))

        assert [sorted(p.nodes) for p in result.patterns] == [["a1", "a2", "a3"], ["b1", "b2", "b3"]]
        assert all(len(p.edges) == 3 for p in result.patterns)

    def test_bridge_center(self, star_store: GraphStore) -> None:
        """Test that a centre with unlinked neighbors is a bridge."""
        result = mine(star_store, enabled_patterns=("bridge",))

        assert [p.nodes[0] for p in result.patterns] == ["center"]

    def test_triangle_has_no_bridge(self, triangles_store: GraphStore) -> None:
        """Test that linked neighbors disqualify a bridge."""
        assert mine(triangles_store, enabled_patterns=("bridge",)).patterns == []


class TestScoringAndFiltering:
    """Tests for support, confidence, lift and conviction."""

    def test_support_bound_and_size_cap(self, graph_builder: Callable[..., GraphStore]) -> None:
        """Test that every pattern respects support and size bounds."""
        ids = [f"n{i}" for i in range(8)]
        edges = [(ids[i], ids[i + 1]) for i in range(7)] + [
            ("n0", "n3"), ("n0", "n5"), ("n0", "n7"), ("n4", "n2"), ("n7", "n0"),
        ]
        store = graph_builder(ids, edges)

        result = mine(store, max_pattern_size=3)

        assert result.pattern_count > 0
        for pattern in result.patterns:
            assert 0.0 <= pattern.support <= 1.0
            assert pattern.size <= 3

    def test_min_support_filters(self, hub_store: GraphStore) -> None:
        """Test that low-support candidates are dropped but counted."""
        result = mine(hub_store, enabled_patterns=("hub",), min_support=0.9)

        assert result.candidates_found == 1
        assert result.pattern_count == 0

    def test_lift_and_conviction(self) -> None:
        """Test scoring of a weak-edged star."""
        store = GraphStore()
        for node_id in ("c", "x", "y", "z"):
            store.add_node(Node(id=node_id, content=node_id, node_type="t"))
        for target in ("x", "y", "z"):
            store.add_edge(Edge(from_id="c", to_id=target, edge_type="t", strength=0.5))

        pattern = mine(store, enabled_patterns=("star",)).patterns[0]

        assert pattern.confidence == pytest.approx(0.5)
        assert pattern.support == 1.0
        assert pattern.lift == pytest.approx(2.0)
        assert pattern.conviction == pytest.approx(0.0)

    def test_full_confidence_conviction_defaults(self, chain_store: GraphStore) -> None:
        """Test that conviction is 1 when confidence is 1."""
        pattern = mine(chain_store, enabled_patterns=("chain",)).patterns[0]

        assert pattern.confidence == 1.0
        assert pattern.lift == pytest.approx(1.0)
        assert pattern.conviction == 1.0

    def test_min_confidence_filters(self) -> None:
        """Test that weak patterns fall below the confidence floor."""
        store = GraphStore()
        for node_id in ("c", "x", "y", "z"):
            store.add_node(Node(id=node_id, content=node_id, node_type="t"))
        for target in ("x", "y", "z"):
            store.add_edge(Edge(from_id="c", to_id=target, edge_type="t", strength=0.1))

        assert mine(store, enabled_patterns=("star",)).patterns == []


class TestMiningResult:
    """Tests for the result summary."""

    def test_enabled_order(self, star_store: GraphStore) -> None:
        """Test that families run in the configured order."""
        result = mine(star_store, enabled_patterns=("hub", "star"))

        assert [p.id for p in result.patterns] == ["hub-pattern_0001", "star-pattern_0002"]
        assert result.type_distribution == {"hub": 1, "star": 1}

    def test_summary_values(self, chain_store: GraphStore) -> None:
        """Test coverage and averages."""
        result = mine(chain_store, enabled_patterns=("chain", "tree"))

        assert result.coverage_percentage == 100.0
        assert result.avg_confidence == 1.0
        assert len(result.by_type("tree")) == 2
        assert result.highest_quality(1)[0].support == 1.0
        assert result.to_dict()["pattern_count"] == 3

    def test_empty_graph(self) -> None:
        """Test that an empty graph yields an empty result."""
        result = PatternMiner().mine([], [])

        assert result.patterns == []
        assert result.coverage_percentage == 0.0
        assert result.avg_support == 0.0

    def test_pattern_to_dict(self, chain_store: GraphStore) -> None:
        """Test pattern serialization."""
        data = mine(chain_store, enabled_patterns=("chain",)).patterns[0].to_dict()

        assert data["pattern_type"] == "chain"
        assert data["nodes"] == ["A", "B", "C", "D"]
        assert data["edges"][0] == {"from_id": "A", "to_id": "B", "edge_type": "links"}
        assert data["conviction"] == 1.0
