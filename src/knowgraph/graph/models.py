"""Value types for the knowledge graph.

This module defines dataclass representations for everything GraphStore
stores or returns:
- Node: A typed data node with opaque content
- Edge: A typed, weighted, directed relationship between two nodes
- KnowledgeRecord: A node together with its full edge list (subgraph entry)
- Cluster: A group of node ids produced by a clustering call
- GraphStats: Summary counts for the whole graph

Each type provides dictionary serialization. Timestamps serialize to ISO 8601.
"""

import copy
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from knowgraph.core.constants import DEFAULT_EDGE_STRENGTH


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Any:
    """Parse an ISO 8601 string into a datetime; pass anything else through."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


def is_valid_id(value: Any) -> bool:
    """Check that a value is usable as a node id.

    A valid id is a non-empty string without leading or trailing whitespace.
    """
    return isinstance(value, str) and len(value) > 0 and value.strip() == value


def clamp_unit(value: float) -> float:
    """Clamp a number into [0, 1]."""
    return max(0.0, min(1.0, value))


@dataclass
class Node:
    """A data node in the knowledge graph.

    Attributes:
        id: Unique, immutable identifier.
        content: Opaque payload (text, mapping, list, number...).
        node_type: Classification of the node.
        source: Optional origin of the content.
        created: Creation timestamp.
        modified: Last modification timestamp, never earlier than ``created``.
        metadata: Optional string-keyed attributes.
    """

    id: str
    content: Any
    node_type: str
    source: Optional[str] = None
    created: datetime = field(default_factory=utc_now)
    modified: datetime = field(default_factory=utc_now)
    metadata: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary.

        Returns:
            Dictionary with all node properties.
        """
        return {
            "id": self.id,
            "content": copy.deepcopy(self.content),
            "node_type": self.node_type,
            "source": self.source,
            "created": self.created.isoformat() if isinstance(self.created, datetime) else self.created,
            "modified": self.modified.isoformat() if isinstance(self.modified, datetime) else self.modified,
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Node":
        """Create a Node from a dictionary.

        Args:
            data: Dictionary containing node properties.

        Returns:
            Node populated from the dictionary.
        """
        now = utc_now()
        return cls(
            id=data["id"],
            content=copy.deepcopy(data.get("content")),
            node_type=data.get("node_type", data.get("type", "")),
            source=data.get("source"),
            created=parse_timestamp(data.get("created", now)),
            modified=parse_timestamp(data.get("modified", now)),
            metadata=copy.deepcopy(data.get("metadata")),
        )


@dataclass
class Edge:
    """A directed, typed relationship between two nodes.

    Several edges may connect the same ordered pair as long as their types
    differ; self-loops are allowed. ``key`` is assigned by the store and is
    the edge's true identity.

    Attributes:
        from_id: Source node identifier.
        to_id: Target node identifier.
        edge_type: Relationship type name.
        strength: Connection strength in [0, 1].
        created: Creation timestamp.
        metadata: Optional string-keyed attributes.
        key: Store-assigned composite key, None until stored.
    """

    from_id: str
    to_id: str
    edge_type: str
    strength: float = DEFAULT_EDGE_STRENGTH
    created: datetime = field(default_factory=utc_now)
    metadata: Optional[dict[str, Any]] = None
    key: Optional[str] = None

    @property
    def is_self_loop(self) -> bool:
        """True when the edge starts and ends at the same node."""
        return self.from_id == self.to_id

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite to ``node_id``."""
        return self.to_id if self.from_id == node_id else self.from_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary.

        Returns:
            Dictionary with all edge properties.
        """
        return {
            "key": self.key,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "edge_type": self.edge_type,
            "strength": self.strength,
            "created": self.created.isoformat() if isinstance(self.created, datetime) else self.created,
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Edge":
        """Create an Edge from a dictionary.

        Args:
            data: Dictionary containing edge properties.

        Returns:
            Edge populated from the dictionary (without a store key).
        """
        return cls(
            from_id=data["from_id"],
            to_id=data["to_id"],
            edge_type=data.get("edge_type", data.get("type", "")),
            strength=data.get("strength", DEFAULT_EDGE_STRENGTH),
            created=parse_timestamp(data.get("created", utc_now())),
            metadata=copy.deepcopy(data.get("metadata")),
        )


def find_invalid_node_field(node: Any) -> Optional[str]:
    """Return the name of the first malformed field of a node, or None."""
    if not isinstance(node, Node):
        return "node"
    if not is_valid_id(node.id):
        return "id"
    if node.content is None:
        return "content"
    if not isinstance(node.node_type, str) or not node.node_type:
        return "node_type"
    if node.source is not None and not isinstance(node.source, str):
        return "source"
    if not isinstance(node.created, datetime):
        return "created"
    if not isinstance(node.modified, datetime):
        return "modified"
    try:
        if node.modified < node.created:
            return "modified"
    except TypeError:
        # naive and aware timestamps cannot be compared
        return "modified"
    if node.metadata is not None:
        if not isinstance(node.metadata, dict) or not all(
            isinstance(k, str) for k in node.metadata
        ):
            return "metadata"
    return None


def find_invalid_edge_field(edge: Any) -> Optional[str]:
    """Return the name of the first malformed field of an edge, or None.

    Out-of-range strength is not an error; the store clamps it.
    """
    if not isinstance(edge, Edge):
        return "edge"
    if not is_valid_id(edge.from_id):
        return "from_id"
    if not is_valid_id(edge.to_id):
        return "to_id"
    if not isinstance(edge.edge_type, str) or not edge.edge_type:
        return "edge_type"
    strength = edge.strength
    if strength is not None and (
        isinstance(strength, bool)
        or not isinstance(strength, (int, float))
        or math.isnan(strength)
    ):
        return "strength"
    if not isinstance(edge.created, datetime):
        return "created"
    if edge.metadata is not None:
        if not isinstance(edge.metadata, dict) or not all(
            isinstance(k, str) for k in edge.metadata
        ):
            return "metadata"
    return None


@dataclass
class KnowledgeRecord:
    """A node with every edge touching it, as returned by subgraph extraction.

    Attributes:
        node: The visited node.
        edges: All incoming and outgoing edges of the node.
        depth: Hop distance from the subgraph root.
        context: Human-readable description of how the node was reached.
    """

    node: Node
    edges: list[Edge] = field(default_factory=list)
    depth: int = 0
    context: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node": self.node.to_dict(),
            "edges": [e.to_dict() for e in self.edges],
            "depth": self.depth,
            "context": self.context,
        }


@dataclass
class Cluster:
    """
    A group of nodes produced by a clustering call.

    Attributes:
        id: Cluster identifier, unique within one call
        nodes: Member node ids (never empty)
        algorithm: "community" or "similarity"
        coherence: Cohesion score in [0, 1]
        centroid: Representative member, if any
        modularity: Modularity contribution (community clusters)
        avg_similarity: Mean internal similarity (similarity clusters)
    """

    id: str
    nodes: list[str]
    algorithm: str
    coherence: float
    centroid: Optional[str] = None
    modularity: Optional[float] = None
    avg_similarity: Optional[float] = None

    @property
    def size(self) -> int:
        """Number of member nodes."""
        return len(self.nodes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "id": self.id,
            "nodes": list(self.nodes),
            "algorithm": self.algorithm,
            "coherence": round(self.coherence, 4),
            "centroid": self.centroid,
        }
        if self.modularity is not None:
            result["modularity"] = round(self.modularity, 4)
        if self.avg_similarity is not None:
            result["avg_similarity"] = round(self.avg_similarity, 4)
        return result


@dataclass
class GraphStats:
    """Statistics about the knowledge graph.

    Attributes:
        node_count: Number of nodes.
        edge_count: Number of edges.
        relationship_counts: Edge counts by relationship type.
        node_type_counts: Node counts by node type.
    """

    node_count: int
    edge_count: int
    relationship_counts: dict[str, int] = field(default_factory=dict)
    node_type_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "relationship_counts": dict(self.relationship_counts),
            "node_type_counts": dict(self.node_type_counts),
        }
