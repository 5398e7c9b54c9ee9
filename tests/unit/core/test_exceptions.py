"""Tests for the exception hierarchy."""

from pathlib import Path

from knowgraph.core.exceptions import (
    ConfigurationError,
    DuplicateIdError,
    InvalidArgumentError,
    InvalidEdgeError,
    InvalidNodeError,
    KnowGraphError,
    NodeNotFoundError,
    ReferentialIntegrityError,
    SnapshotError,
)


class TestHierarchy:
    """Tests for exception inheritance."""

    def test_all_derive_from_base(self) -> None:
        """Test that every error is a KnowGraphError."""
        for cls in (
            ConfigurationError,
            DuplicateIdError,
            InvalidArgumentError,
            InvalidEdgeError,
            InvalidNodeError,
            NodeNotFoundError,
            ReferentialIntegrityError,
            SnapshotError,
        ):
            assert issubclass(cls, KnowGraphError)

    def test_invalid_node_and_edge_are_argument_errors(self) -> None:
        """Test the InvalidArgument branch."""
        assert issubclass(InvalidNodeError, InvalidArgumentError)
        assert issubclass(InvalidEdgeError, InvalidArgumentError)

    def test_node_not_found_is_referential(self) -> None:
        """Test the ReferentialIntegrity branch."""
        assert issubclass(NodeNotFoundError, ReferentialIntegrityError)


class TestFormatting:
    """Tests for message rendering."""

    def test_message_without_details(self) -> None:
        """Test plain message rendering."""
        assert str(KnowGraphError("boom")) == "boom"

    def test_message_with_details(self) -> None:
        """Test that details render as key=value pairs."""
        error = KnowGraphError("boom", details={"a": 1, "b": "x"})

        assert str(error) == "boom (a=1, b=x)"

    def test_field_recorded(self) -> None:
        """Test that the malformed field is recorded."""
        error = InvalidNodeError("Invalid node", field="content")

        assert error.field == "content"
        assert error.details == {"field": "content"}

    def test_node_id_recorded(self) -> None:
        """Test that node ids are recorded."""
        duplicate = DuplicateIdError("exists", node_id="n1")
        missing = NodeNotFoundError("missing", node_id="n2")

        assert duplicate.node_id == "n1"
        assert missing.node_id == "n2"
        assert "node_id=n2" in str(missing)

    def test_snapshot_path_recorded(self) -> None:
        """Test that snapshot paths are recorded as strings."""
        error = SnapshotError("bad", path=Path("/tmp/graph.json"))

        assert error.details["path"] == str(Path("/tmp/graph.json"))
