"""knowgraph graph storage module.

Main components:
- GraphStore: Owns nodes and multi-edges; CRUD, traversal, clustering
- Value types: Node, Edge, KnowledgeRecord, Cluster, GraphStats
- Events: GraphEvent and the in-process EventBus sink
- Snapshots: GraphSnapshot with JSON save/load

Example usage:
    from knowgraph.graph import GraphStore, Node, Edge

    store = GraphStore()
    store.add_node(Node(id="auth", content="Token validation", node_type="concept"))
    store.add_node(Node(id="session", content="Session storage", node_type="concept"))
    store.add_edge(Edge(from_id="auth", to_id="session", edge_type="depends_on"))

    records = store.get_subgraph("auth", depth=1)
"""

from knowgraph.graph.models import (
    Cluster,
    Edge,
    GraphStats,
    KnowledgeRecord,
    Node,
)
from knowgraph.graph.events import (
    EventBus,
    EventSink,
    GraphEvent,
    GraphEventType,
)
from knowgraph.graph.snapshot import (
    EdgeRecord,
    GraphSnapshot,
    NodeRecord,
    SnapshotMetadata,
    load_snapshot,
    save_snapshot,
)
from knowgraph.graph.store import GraphStore, ImportReport

__all__ = [
    # Store
    "GraphStore",
    "ImportReport",
    # Models
    "Node",
    "Edge",
    "KnowledgeRecord",
    "Cluster",
    "GraphStats",
    # Events
    "GraphEvent",
    "GraphEventType",
    "EventSink",
    "EventBus",
    # Snapshots
    "GraphSnapshot",
    "NodeRecord",
    "EdgeRecord",
    "SnapshotMetadata",
    "save_snapshot",
    "load_snapshot",
]
