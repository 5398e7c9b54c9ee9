"""Graph snapshots: the unit exchanged with durable storage.

A snapshot holds every node and edge plus metadata. ``node_count`` and
``edge_count`` in the metadata must equal the array lengths; the model
validator enforces this so a truncated or hand-edited file is rejected
before it reaches the store.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from knowgraph.core.constants import DEFAULT_EDGE_STRENGTH, SNAPSHOT_VERSION
from knowgraph.core.exceptions import SnapshotError
from knowgraph.graph.models import Edge, Node, utc_now


logger = logging.getLogger(__name__)


class NodeRecord(BaseModel):
    """Serialized node."""

    id: str = Field(min_length=1)
    content: Any
    node_type: str = Field(min_length=1)
    source: Optional[str] = None
    created: datetime
    modified: datetime
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def from_node(cls, node: Node) -> "NodeRecord":
        return cls(
            id=node.id,
            content=node.content,
            node_type=node.node_type,
            source=node.source,
            created=node.created,
            modified=node.modified,
            metadata=node.metadata,
        )

    def to_node(self) -> Node:
        return Node(
            id=self.id,
            content=self.content,
            node_type=self.node_type,
            source=self.source,
            created=self.created,
            modified=self.modified,
            metadata=self.metadata,
        )


class EdgeRecord(BaseModel):
    """Serialized edge. The store key is not persisted."""

    from_id: str = Field(min_length=1)
    to_id: str = Field(min_length=1)
    edge_type: str = Field(min_length=1)
    strength: float = DEFAULT_EDGE_STRENGTH
    created: datetime
    metadata: Optional[dict[str, Any]] = None

    @classmethod
    def from_edge(cls, edge: Edge) -> "EdgeRecord":
        return cls(
            from_id=edge.from_id,
            to_id=edge.to_id,
            edge_type=edge.edge_type,
            strength=edge.strength,
            created=edge.created,
            metadata=edge.metadata,
        )

    def to_edge(self) -> Edge:
        return Edge(
            from_id=self.from_id,
            to_id=self.to_id,
            edge_type=self.edge_type,
            strength=self.strength,
            created=self.created,
            metadata=self.metadata,
        )


class SnapshotMetadata(BaseModel):
    """Snapshot header. Additional keys are preserved."""

    model_config = ConfigDict(extra="allow")

    version: str = Field(default=SNAPSHOT_VERSION, min_length=1)
    created: datetime = Field(default_factory=utc_now)
    node_count: int = Field(ge=0)
    edge_count: int = Field(ge=0)


class GraphSnapshot(BaseModel):
    """Complete graph contents for import/export."""

    nodes: list[NodeRecord] = Field(default_factory=list)
    edges: list[EdgeRecord] = Field(default_factory=list)
    metadata: SnapshotMetadata

    @model_validator(mode="after")
    def check_counts(self) -> "GraphSnapshot":
        if self.metadata.node_count != len(self.nodes):
            raise ValueError(
                f"metadata.node_count={self.metadata.node_count} "
                f"but snapshot has {len(self.nodes)} nodes"
            )
        if self.metadata.edge_count != len(self.edges):
            raise ValueError(
                f"metadata.edge_count={self.metadata.edge_count} "
                f"but snapshot has {len(self.edges)} edges"
            )
        return self

    @classmethod
    def build(
        cls,
        nodes: list[Node],
        edges: list[Edge],
        **extra_metadata: Any,
    ) -> "GraphSnapshot":
        """Build a snapshot whose metadata counts match its contents."""
        return cls(
            nodes=[NodeRecord.from_node(n) for n in nodes],
            edges=[EdgeRecord.from_edge(e) for e in edges],
            metadata=SnapshotMetadata(
                node_count=len(nodes),
                edge_count=len(edges),
                **extra_metadata,
            ),
        )


def parse_snapshot(data: dict[str, Any]) -> GraphSnapshot:
    """Validate a snapshot dictionary.

    Raises:
        SnapshotError: If the structure or the count invariant is violated.
    """
    try:
        return GraphSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(
            f"Invalid graph snapshot: {e.error_count()} validation error(s)",
            details={"errors": e.errors(include_url=False)[:5]},
        ) from e


def save_snapshot(snapshot: GraphSnapshot, path: Path) -> None:
    """Write a snapshot as JSON, replacing the target atomically."""
    try:
        payload = snapshot.model_dump_json(indent=2)
    except (TypeError, ValueError) as e:
        raise SnapshotError(f"Snapshot is not JSON serializable: {e}", path=path) from e

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise SnapshotError(f"Failed to write snapshot: {e}", path=path) from e

    logger.debug(
        f"Saved snapshot with {snapshot.metadata.node_count} nodes and "
        f"{snapshot.metadata.edge_count} edges to {path}"
    )


def load_snapshot(path: Path) -> GraphSnapshot:
    """Read and validate a snapshot JSON file.

    Raises:
        SnapshotError: If the file is missing, is not JSON, or fails validation.
    """
    if not path.exists():
        raise SnapshotError("Snapshot file not found", path=path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in snapshot file: {e}", path=path) from e
    except OSError as e:
        raise SnapshotError(f"Failed to read snapshot: {e}", path=path) from e

    if not isinstance(data, dict):
        raise SnapshotError("Snapshot root must be an object", path=path)

    try:
        return GraphSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotError(
            f"Invalid graph snapshot: {e.error_count()} validation error(s)",
            path=path,
            details={"errors": e.errors(include_url=False)[:5]},
        ) from e
