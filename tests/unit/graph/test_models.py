"""Tests for graph value types."""

from datetime import datetime, timedelta, timezone

from knowgraph.graph.models import (
    Cluster,
    Edge,
    GraphStats,
    KnowledgeRecord,
    Node,
    clamp_unit,
    find_invalid_edge_field,
    find_invalid_node_field,
    is_valid_id,
)


class TestNode:
    """Tests for Node."""

    def test_to_dict_serializes_timestamps(self) -> None:
        """Test that timestamps become ISO strings."""
        created = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)
        node = Node(id="n1", content="text", node_type="note", created=created, modified=created)

        data = node.to_dict()

        assert data["id"] == "n1"
        assert data["node_type"] == "note"
        assert data["created"] == created.isoformat()

    def test_from_dict_round_trip(self) -> None:
        """Test that from_dict restores a serialized node."""
        node = Node(
            id="n1",
            content={"title": "Auth", "tags": ["security"]},
            node_type="doc",
            source="wiki",
            metadata={"lang": "en"},
        )

        restored = Node.from_dict(node.to_dict())

        assert restored == node

    def test_to_dict_copies_content(self) -> None:
        """Test that mutating serialized content leaves the node intact."""
        node = Node(id="n1", content={"items": [1, 2]}, node_type="doc")

        data = node.to_dict()
        data["content"]["items"].append(3)

        assert node.content == {"items": [1, 2]}


class TestEdge:
    """Tests for Edge."""

    def test_default_strength(self) -> None:
        """Test that strength defaults to 1.0."""
        edge = Edge(from_id="a", to_id="b", edge_type="links")

        assert edge.strength == 1.0
        assert edge.key is None

    def test_self_loop(self) -> None:
        """Test self-loop detection."""
        assert Edge(from_id="a", to_id="a", edge_type="t").is_self_loop
        assert not Edge(from_id="a", to_id="b", edge_type="t").is_self_loop

    def test_other_end(self) -> None:
        """Test the opposite endpoint lookup."""
        edge = Edge(from_id="a", to_id="b", edge_type="t")

        assert edge.other_end("a") == "b"
        assert edge.other_end("b") == "a"

    def test_from_dict(self) -> None:
        """Test that from_dict ignores the store key."""
        edge = Edge(from_id="a", to_id="b", edge_type="t", strength=0.4, key="a,b,t,1")

        restored = Edge.from_dict(edge.to_dict())

        assert restored.key is None
        assert restored.strength == 0.4
        assert restored.created == edge.created


class TestValidation:
    """Tests for field validation helpers."""

    def test_valid_ids(self) -> None:
        """Test id validity."""
        assert is_valid_id("node-1")
        assert not is_valid_id("")
        assert not is_valid_id("  padded ")
        assert not is_valid_id(None)
        assert not is_valid_id(42)

    def test_valid_node(self) -> None:
        """Test that a complete node has no invalid field."""
        assert find_invalid_node_field(Node(id="n", content="c", node_type="t")) is None

    def test_node_missing_content(self) -> None:
        """Test that None content is rejected."""
        assert find_invalid_node_field(Node(id="n", content=None, node_type="t")) == "content"

    def test_node_empty_type(self) -> None:
        """Test that an empty type is rejected."""
        assert find_invalid_node_field(Node(id="n", content="c", node_type="")) == "node_type"

    def test_node_modified_before_created(self) -> None:
        """Test the modified >= created invariant."""
        now = datetime.now(timezone.utc)
        node = Node(id="n", content="c", node_type="t", created=now, modified=now - timedelta(days=1))

        assert find_invalid_node_field(node) == "modified"

    def test_node_non_string_metadata_key(self) -> None:
        """Test that metadata keys must be strings."""
        node = Node(id="n", content="c", node_type="t", metadata={1: "x"})

        assert find_invalid_node_field(node) == "metadata"

    def test_not_a_node(self) -> None:
        """Test that non-Node values are rejected."""
        assert find_invalid_node_field({"id": "n"}) == "node"

    def test_edge_empty_type(self) -> None:
        """Test that an empty edge type is rejected."""
        assert find_invalid_edge_field(Edge(from_id="a", to_id="b", edge_type="")) == "edge_type"

    def test_edge_out_of_range_strength_allowed(self) -> None:
        """Test that out-of-range strength is left for clamping."""
        assert find_invalid_edge_field(Edge(from_id="a", to_id="b", edge_type="t", strength=7)) is None
        assert find_invalid_edge_field(Edge(from_id="a", to_id="b", edge_type="t", strength=None)) is None

    def test_edge_nan_strength(self) -> None:
        """Test that NaN strength is rejected."""
        edge = Edge(from_id="a", to_id="b", edge_type="t", strength=float("nan"))

        assert find_invalid_edge_field(edge) == "strength"

    def test_edge_string_strength(self) -> None:
        """Test that non-numeric strength is rejected."""
        edge = Edge(from_id="a", to_id="b", edge_type="t", strength="high")

        assert find_invalid_edge_field(edge) == "strength"

    def test_clamp_unit(self) -> None:
        """Test clamping into [0, 1]."""
        assert clamp_unit(-0.5) == 0.0
        assert clamp_unit(0.25) == 0.25
        assert clamp_unit(3) == 1.0


class TestResultTypes:
    """Tests for records returned by the store."""

    def test_cluster_to_dict(self) -> None:
        """Test cluster serialization omits absent scores."""
        cluster = Cluster(id="cluster_000", nodes=["a", "b"], algorithm="community", coherence=0.123456)

        data = cluster.to_dict()

        assert cluster.size == 2
        assert data["coherence"] == 0.1235
        assert "modularity" not in data
        assert "avg_similarity" not in data

    def test_knowledge_record_to_dict(self) -> None:
        """Test knowledge record serialization."""
        record = KnowledgeRecord(
            node=Node(id="n", content="c", node_type="t"),
            edges=[Edge(from_id="n", to_id="m", edge_type="t")],
            depth=1,
            context="Subgraph from r, depth 1",
        )

        data = record.to_dict()

        assert data["node"]["id"] == "n"
        assert len(data["edges"]) == 1
        assert data["depth"] == 1

    def test_graph_stats_to_dict(self) -> None:
        """Test stats serialization."""
        stats = GraphStats(node_count=2, edge_count=1, relationship_counts={"t": 1})

        assert stats.to_dict()["relationship_counts"] == {"t": 1}
