"""In-memory knowledge graph storage.

This module provides the GraphStore class which owns every node and edge
of a directed multigraph and exposes:
- Node operations (add, get, update, delete with edge cascade)
- Edge operations (add, get, delete, per-node edge lists)
- Graph traversal (path enumeration, shortest path, subgraph extraction)
- Clustering (connected communities, Louvain communities or content similarity)
- Snapshot import/export
- Analysis façades over MetricsEngine and PatternMiner

Nodes live in an arena keyed by id. Edges live in a second arena keyed by a
synthetic composite key ``from,to,type,sequence`` and are reached through
per-node adjacency lists of keys, so no record holds a live reference to
another. Every value that enters or leaves the store is deep-copied.
"""

import copy
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from knowgraph.analysis.community import LouvainDetector
from knowgraph.analysis.metrics import (
    CentralNode,
    GraphMetrics,
    MetricsEngine,
    NodeMetrics,
    StructuralAnalysis,
    StructuralImportance,
)
from knowgraph.analysis.patterns import PatternMiner, PatternMiningResult
from knowgraph.analysis.similarity import SimilarityClusterer
from knowgraph.core.config import (
    CommunityConfig,
    EngineConfig,
    MiningConfig,
    SimilarityConfig,
    int_or_default,
)
from knowgraph.core.constants import (
    DEFAULT_EDGE_STRENGTH,
    CentralityType,
    ClusterAlgorithm,
    Direction,
)
from knowgraph.core.exceptions import (
    DuplicateIdError,
    InvalidEdgeError,
    InvalidNodeError,
    KnowGraphError,
    NodeNotFoundError,
)
from knowgraph.graph.events import GraphEvent, GraphEventType
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
    utc_now,
)
from knowgraph.graph.snapshot import GraphSnapshot, parse_snapshot


logger = logging.getLogger(__name__)

UPDATABLE_NODE_FIELDS = frozenset({"content", "node_type", "source", "created", "metadata"})


@dataclass
class ImportReport:
    """Outcome of GraphStore.import_snapshot.

    Attributes:
        nodes_imported: Nodes added to the store.
        edges_imported: Edges added to the store.
        nodes_skipped: Snapshot nodes rejected by validation.
        edges_skipped: Snapshot edges rejected by validation.
    """

    nodes_imported: int = 0
    edges_imported: int = 0
    nodes_skipped: int = 0
    edges_skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "nodes_imported": self.nodes_imported,
            "edges_imported": self.edges_imported,
            "nodes_skipped": self.nodes_skipped,
            "edges_skipped": self.edges_skipped,
        }


class GraphStore:
    """Owns the nodes and multi-edges of a knowledge graph.

    Provides methods for:
    - Creating, reading, updating and deleting nodes and edges
    - Directed path enumeration and breadth-first shortest paths
    - Undirected subgraph extraction and connected components
    - Community, Louvain and similarity clustering
    - Metrics and pattern mining over the current contents

    Absence is a normal outcome: lookups of unknown ids return None, False
    or an empty list. Malformed input to add operations raises. Malformed
    traversal or analytics parameters fall back to configured defaults.

    The store is not thread-safe; a concurrent host must serialize calls.

    Example:
        store = GraphStore()
        store.add_node(Node(id="a", content="alpha", node_type="concept"))
        store.add_node(Node(id="b", content="beta", node_type="concept"))
        store.add_edge(Edge(from_id="a", to_id="b", edge_type="relates_to"))
        path = store.find_shortest_path("a", "b")
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        event_sink: Optional[Callable[[GraphEvent], None]] = None,
    ) -> None:
        """Initialize an empty store.

        Args:
            config: Engine configuration; invalid values are normalized.
            event_sink: Callable receiving a GraphEvent after each mutation.
        """
        self._config = (config or EngineConfig()).normalized()
        self._event_sink = event_sink
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        self._out: dict[str, list[str]] = {}
        self._in: dict[str, list[str]] = {}
        self._by_type: dict[str, list[str]] = {}
        self._edge_seq = 0

    @property
    def config(self) -> EngineConfig:
        """Return the normalized configuration."""
        return self._config

    @property
    def node_count(self) -> int:
        """Number of stored nodes."""
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        """Number of stored edges."""
        return len(self._edges)

    def _emit(self, event_type: GraphEventType, payload: dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        try:
            self._event_sink(GraphEvent(event_type=event_type, payload=payload))
        except Exception:
            logger.exception(f"Event sink failed on {event_type.value}")

    # =========================================================================
    # Node Operations
    # =========================================================================

    def add_node(self, node: Node) -> str:
        """Store a copy of a node.

        Args:
            node: Node to add.

        Returns:
            The node id.

        Raises:
            InvalidNodeError: If a required field is missing or malformed.
            DuplicateIdError: If a node with the same id exists.
        """
        invalid = find_invalid_node_field(node)
        if invalid is not None:
            raise InvalidNodeError(f"Invalid node: malformed {invalid}", field=invalid)
        if node.id in self._nodes:
            raise DuplicateIdError("Node already exists", node_id=node.id)

        stored = copy.deepcopy(node)
        self._nodes[stored.id] = stored
        self._out[stored.id] = []
        self._in[stored.id] = []

        logger.debug(f"Added node {stored.id} ({stored.node_type})")
        self._emit(GraphEventType.NODE_ADDED, stored.to_dict())
        return stored.id

    def get_node(self, node_id: str) -> Optional[Node]:
        """Return a copy of a node, or None if it does not exist."""
        if not is_valid_id(node_id):
            return None
        node = self._nodes.get(node_id)
        return copy.deepcopy(node) if node is not None else None

    def has_node(self, node_id: str) -> bool:
        """Check whether a node exists."""
        return is_valid_id(node_id) and node_id in self._nodes

    def get_all_nodes(self) -> list[Node]:
        """Return copies of all nodes in insertion order."""
        return [copy.deepcopy(n) for n in self._nodes.values()]

    def update_node(self, node_id: str, fields: dict[str, Any]) -> bool:
        """Merge fields into an existing node.

        ``id`` cannot be changed and ``modified`` is always recomputed.

        Args:
            node_id: Node to update.
            fields: Partial field values keyed by Node attribute name.

        Returns:
            True if the node was updated, False if it does not exist or
            the merged node fails validation.
        """
        current = self._nodes.get(node_id) if is_valid_id(node_id) else None
        if current is None:
            return False
        if not isinstance(fields, dict):
            return False

        changes = dict(fields)
        changes.pop("modified", None)
        if "id" in changes:
            if changes.pop("id") != node_id:
                logger.warning(f"Refusing to change id of node {node_id}")
                return False

        unknown = set(changes) - UPDATABLE_NODE_FIELDS
        if unknown:
            logger.warning(f"Unknown node fields for {node_id}: {sorted(unknown)}")
            return False

        merged = copy.deepcopy(current)
        for name, value in changes.items():
            setattr(merged, name, copy.deepcopy(value))
        # naive created timestamps get a naive modified so the two stay comparable
        if isinstance(merged.created, datetime):
            merged.modified = max(datetime.now(merged.created.tzinfo), merged.created)
        else:
            merged.modified = utc_now()

        if find_invalid_node_field(merged) is not None:
            return False

        self._nodes[node_id] = merged
        logger.debug(f"Updated node {node_id}")
        self._emit(GraphEventType.NODE_UPDATED, merged.to_dict())
        return True

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and every edge touching it.

        Returns:
            True if the node existed.
        """
        if not self.has_node(node_id):
            return False

        touching = list(dict.fromkeys(self._out[node_id] + self._in[node_id]))
        for key in touching:
            self._remove_edge(key)

        node = self._nodes.pop(node_id)
        del self._out[node_id]
        del self._in[node_id]

        logger.debug(f"Deleted node {node_id} and {len(touching)} edges")
        self._emit(GraphEventType.NODE_DELETED, node.to_dict())
        return True

    # =========================================================================
    # Edge Operations
    # =========================================================================

    def add_edge(self, edge: Edge) -> str:
        """Store a copy of an edge.

        Strength is clamped into [0, 1]; a missing strength becomes 1.0.

        Args:
            edge: Edge to add. Its ``key`` is ignored.

        Returns:
            The synthetic edge key.

        Raises:
            InvalidEdgeError: If the type is empty or a field is malformed.
            NodeNotFoundError: If either endpoint does not exist.
        """
        invalid = find_invalid_edge_field(edge)
        if invalid is not None:
            raise InvalidEdgeError(f"Invalid edge: malformed {invalid}", field=invalid)
        for endpoint in (edge.from_id, edge.to_id):
            if endpoint not in self._nodes:
                raise NodeNotFoundError("Edge endpoint does not exist", node_id=endpoint)

        stored = copy.deepcopy(edge)
        strength = DEFAULT_EDGE_STRENGTH if stored.strength is None else float(stored.strength)
        stored.strength = clamp_unit(strength)

        self._edge_seq += 1
        stored.key = f"{stored.from_id},{stored.to_id},{stored.edge_type},{self._edge_seq}"

        self._edges[stored.key] = stored
        self._out[stored.from_id].append(stored.key)
        self._in[stored.to_id].append(stored.key)
        self._by_type.setdefault(stored.edge_type, []).append(stored.key)

        logger.debug(f"Added edge {stored.key}")
        self._emit(GraphEventType.EDGE_ADDED, stored.to_dict())
        return stored.key

    def _remove_edge(self, key: str) -> None:
        edge = self._edges.pop(key)
        self._out[edge.from_id].remove(key)
        self._in[edge.to_id].remove(key)
        typed = self._by_type[edge.edge_type]
        typed.remove(key)
        if not typed:
            del self._by_type[edge.edge_type]
        self._emit(GraphEventType.EDGE_DELETED, edge.to_dict())

    def _matching_keys(self, from_id: str, to_id: str, edge_type: Optional[str]) -> list[str]:
        if not self.has_node(from_id) or not self.has_node(to_id):
            return []
        return [
            key
            for key in self._out[from_id]
            if self._edges[key].to_id == to_id
            and (edge_type is None or self._edges[key].edge_type == edge_type)
        ]

    def get_edge(self, from_id: str, to_id: str, edge_type: Optional[str] = None) -> Optional[Edge]:
        """Return the first matching edge, or None.

        Args:
            from_id: Source node id.
            to_id: Target node id.
            edge_type: Restrict to this type; any type if None.
        """
        keys = self._matching_keys(from_id, to_id, edge_type)
        return copy.deepcopy(self._edges[keys[0]]) if keys else None

    def has_edge(self, from_id: str, to_id: str, edge_type: Optional[str] = None) -> bool:
        """Check whether a matching edge exists."""
        return bool(self._matching_keys(from_id, to_id, edge_type))

    def delete_edge(self, from_id: str, to_id: str, edge_type: Optional[str] = None) -> bool:
        """Delete matching edges.

        With ``edge_type`` omitted every edge from ``from_id`` to ``to_id``
        is removed.

        Returns:
            True if at least one edge was removed.
        """
        keys = self._matching_keys(from_id, to_id, edge_type)
        for key in keys:
            self._remove_edge(key)
        if keys:
            logger.debug(f"Deleted {len(keys)} edges {from_id} -> {to_id}")
        return bool(keys)

    def get_all_edges(self) -> list[Edge]:
        """Return copies of all edges in insertion order."""
        return [copy.deepcopy(e) for e in self._edges.values()]

    def get_edges_by_type(self, edge_type: str) -> list[Edge]:
        """Return copies of all edges of one relationship type."""
        return [copy.deepcopy(self._edges[k]) for k in self._by_type.get(edge_type, [])]

    def get_node_edges(self, node_id: str, direction: str = Direction.BOTH.value) -> list[Edge]:
        """Return the edges touching a node.

        Args:
            node_id: Node id.
            direction: "out", "in" or "both". Anything else means "both".

        Returns:
            Outgoing edges then incoming edges. A self-loop is reported once.
        """
        if not self.has_node(node_id):
            return []

        try:
            direction = Direction(direction)
        except ValueError:
            logger.warning(f"Invalid direction {direction!r}, falling back to both")
            direction = Direction.BOTH

        keys: list[str] = []
        if direction in (Direction.OUT, Direction.BOTH):
            keys.extend(self._out[node_id])
        if direction == Direction.IN:
            keys.extend(self._in[node_id])
        elif direction == Direction.BOTH:
            keys.extend(k for k in self._in[node_id] if not self._edges[k].is_self_loop)

        return [copy.deepcopy(self._edges[k]) for k in keys]

    def get_neighbors(self, node_id: str) -> list[str]:
        """Return ids adjacent to a node in either direction."""
        return list(self._undirected_neighbors(node_id)) if self.has_node(node_id) else []

    def _undirected_neighbors(self, node_id: str) -> dict[str, None]:
        neighbors: dict[str, None] = {}
        for key in self._out[node_id]:
            neighbors.setdefault(self._edges[key].to_id)
        for key in self._in[node_id]:
            neighbors.setdefault(self._edges[key].from_id)
        neighbors.pop(node_id, None)
        return neighbors

    def _out_neighbors(self, node_id: str) -> list[str]:
        return list(dict.fromkeys(self._edges[k].to_id for k in self._out[node_id]))

    # =========================================================================
    # Traversal
    # =========================================================================

    def find_paths(self, from_id: str, to_id: str, max_depth: Optional[int] = None) -> list[list[str]]:
        """Enumerate all simple directed paths between two nodes.

        Args:
            from_id: Start node.
            to_id: End node.
            max_depth: Maximum number of nodes in a path.

        Returns:
            Paths as node id lists, in depth-first discovery order.
        """
        traversal = self._config.traversal
        if max_depth is None:
            max_depth = traversal.default_max_depth
        else:
            max_depth = int_or_default(
                max_depth,
                traversal.default_max_depth,
                "max_depth",
                minimum=1,
                maximum=traversal.max_depth_limit,
            )

        if not self.has_node(from_id) or not self.has_node(to_id):
            return []
        if from_id == to_id:
            return [[from_id]]

        paths: list[list[str]] = []
        stack: list[tuple[str, list[str], frozenset[str]]] = [
            (from_id, [from_id], frozenset([from_id]))
        ]
        while stack:
            current, path, visited = stack.pop()
            if current == to_id:
                paths.append(path)
                continue
            if len(path) >= max_depth:
                continue
            for neighbor in reversed(self._out_neighbors(current)):
                if neighbor not in visited:
                    stack.append((neighbor, path + [neighbor], visited | {neighbor}))

        return paths

    def find_shortest_path(self, from_id: str, to_id: str) -> list[str]:
        """Breadth-first shortest directed path.

        Returns:
            Node ids from start to end, ``[from_id]`` when both are the same,
            or an empty list when unreachable.
        """
        if not self.has_node(from_id) or not self.has_node(to_id):
            return []
        if from_id == to_id:
            return [from_id]

        parents: dict[str, str] = {}
        queue = deque([from_id])
        seen = {from_id}
        while queue:
            current = queue.popleft()
            for neighbor in self._out_neighbors(current):
                if neighbor in seen:
                    continue
                seen.add(neighbor)
                parents[neighbor] = current
                if neighbor == to_id:
                    path = [to_id]
                    while path[-1] != from_id:
                        path.append(parents[path[-1]])
                    return path[::-1]
                queue.append(neighbor)

        return []

    def is_connected(self, from_id: str, to_id: str) -> bool:
        """Check directed reachability."""
        return bool(self.find_shortest_path(from_id, to_id))

    def get_subgraph(self, node_id: str, depth: Optional[int] = None) -> list[KnowledgeRecord]:
        """Collect every node within ``depth`` undirected hops of a root.

        Args:
            node_id: Root node.
            depth: Hop limit; 0 returns only the root.

        Returns:
            One KnowledgeRecord per visited node, in breadth-first order,
            each carrying all of that node's edges.
        """
        traversal = self._config.traversal
        if depth is None:
            depth = traversal.default_subgraph_depth
        else:
            depth = int_or_default(
                depth,
                traversal.default_subgraph_depth,
                "depth",
                minimum=0,
                maximum=traversal.max_depth_limit,
            )

        if not self.has_node(node_id):
            return []

        records: list[KnowledgeRecord] = []
        queue = deque([(node_id, 0)])
        seen = {node_id}
        while queue:
            current, level = queue.popleft()
            records.append(
                KnowledgeRecord(
                    node=copy.deepcopy(self._nodes[current]),
                    edges=self.get_node_edges(current, Direction.BOTH.value),
                    depth=level,
                    context=f"Subgraph from {node_id}, depth {level}",
                )
            )
            if level >= depth:
                continue
            for neighbor in self._undirected_neighbors(current):
                if neighbor not in seen:
                    seen.add(neighbor)
                    queue.append((neighbor, level + 1))

        return records

    def get_connected_components(self) -> list[list[str]]:
        """Partition all node ids by undirected reachability."""
        components: list[list[str]] = []
        visited: set[str] = set()

        for start in self._nodes:
            if start in visited:
                continue
            component: list[str] = []
            queue = deque([start])
            visited.add(start)
            while queue:
                current = queue.popleft()
                component.append(current)
                for neighbor in self._undirected_neighbors(current):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        queue.append(neighbor)
            components.append(component)

        return components

    # =========================================================================
    # Clustering
    # =========================================================================

    def cluster_nodes(
        self,
        algorithm: str = ClusterAlgorithm.COMMUNITY.value,
        similarity_config: Optional[SimilarityConfig] = None,
        community_config: Optional[CommunityConfig] = None,
    ) -> list[Cluster]:
        """Group nodes into clusters.

        Args:
            algorithm: "community" (connected components), "louvain"
                (modularity optimization) or "similarity" (content
                similarity). Unknown names fall back to "community".
            similarity_config: Overrides the configured similarity settings.
            community_config: Overrides the configured Louvain settings.

        Returns:
            Freshly computed clusters.
        """
        try:
            algorithm = ClusterAlgorithm(algorithm)
        except ValueError:
            logger.warning(f"Unsupported cluster algorithm {algorithm!r}, falling back to community")
            algorithm = ClusterAlgorithm.COMMUNITY

        if algorithm == ClusterAlgorithm.SIMILARITY:
            clusterer = SimilarityClusterer(similarity_config or self._config.similarity)
            return clusterer.cluster(self.get_all_nodes())

        if algorithm == ClusterAlgorithm.LOUVAIN:
            detector = LouvainDetector(community_config or self._config.community)
            return detector.detect(self.get_all_nodes(), self.get_all_edges())

        return self._community_clusters()

    def _community_clusters(self) -> list[Cluster]:
        """Connected-component clusters with coherence and modularity.

        Coherence is the share of edges touching the component whose both
        endpoints lie inside it. Each cluster carries its Newman modularity
        term ``L_c/m - (D_c/2m)^2``.
        """
        total_edges = len(self._edges)
        clusters: list[Cluster] = []

        for i, component in enumerate(self.get_connected_components()):
            members = set(component)
            touching: set[str] = set()
            for node_id in component:
                touching.update(self._out[node_id])
                touching.update(self._in[node_id])
            internal = sum(
                1
                for key in touching
                if self._edges[key].from_id in members and self._edges[key].to_id in members
            )
            coherence = internal / len(touching) if touching else 1.0

            degrees = {
                node_id: len(self._out[node_id]) + len(self._in[node_id]) for node_id in component
            }
            centroid = max(component, key=lambda n: degrees[n])

            modularity = 0.0
            if total_edges:
                degree_sum = sum(degrees.values())
                modularity = internal / total_edges - (degree_sum / (2 * total_edges)) ** 2

            clusters.append(
                Cluster(
                    id=f"cluster_{i:03d}",
                    nodes=component,
                    algorithm=ClusterAlgorithm.COMMUNITY.value,
                    coherence=clamp_unit(coherence),
                    centroid=centroid,
                    modularity=modularity,
                )
            )

        return clusters

    # =========================================================================
    # Analysis
    # =========================================================================

    def _metrics_engine(self) -> MetricsEngine:
        return MetricsEngine(self.get_all_nodes(), self.get_all_edges(), self._config.metrics)

    def calculate_node_metrics(self, node_id: str) -> Optional[NodeMetrics]:
        """Centralities and clustering coefficient of one node, or None."""
        if not self.has_node(node_id):
            return None
        return self._metrics_engine().calculate_node_metrics(node_id)

    def calculate_graph_metrics(self) -> GraphMetrics:
        """Whole-graph statistics."""
        return self._metrics_engine().calculate_graph_metrics()

    def analyze_structure(self) -> StructuralAnalysis:
        """Small-world, scale-free and bridge-node analysis."""
        return self._metrics_engine().analyze_structure()

    def get_structural_importance(self) -> StructuralImportance:
        """Bridge edges, articulation points and hubs."""
        return self._metrics_engine().get_structural_importance()

    def find_central_nodes(
        self,
        count: Optional[int] = None,
        centrality_type: str = CentralityType.PAGERANK.value,
    ) -> list[CentralNode]:
        """Top nodes by the requested centrality."""
        return self._metrics_engine().find_central_nodes(count, centrality_type)

    def mine_patterns(self, config: Optional[MiningConfig] = None) -> PatternMiningResult:
        """Mine structural patterns from the current graph.

        Args:
            config: Overrides the configured mining settings.
        """
        miner = PatternMiner(config or self._config.mining)
        return miner.mine(self.get_all_nodes(), self.get_all_edges())

    def get_stats(self) -> GraphStats:
        """Get node, edge and per-type counts."""
        node_types: dict[str, int] = {}
        for node in self._nodes.values():
            node_types[node.node_type] = node_types.get(node.node_type, 0) + 1

        return GraphStats(
            node_count=len(self._nodes),
            edge_count=len(self._edges),
            relationship_counts={t: len(keys) for t, keys in self._by_type.items()},
            node_type_counts=node_types,
        )

    # =========================================================================
    # Snapshot
    # =========================================================================

    def clear(self) -> None:
        """Remove all nodes and edges without emitting events."""
        self._nodes.clear()
        self._edges.clear()
        self._out.clear()
        self._in.clear()
        self._by_type.clear()
        self._edge_seq = 0

    def export(self, **extra_metadata: Any) -> GraphSnapshot:
        """Export all nodes and edges as a snapshot."""
        return GraphSnapshot.build(self.get_all_nodes(), self.get_all_edges(), **extra_metadata)

    def import_snapshot(self, snapshot: GraphSnapshot | dict[str, Any]) -> ImportReport:
        """Replace the graph contents with a snapshot.

        The snapshot is validated as a whole first; a snapshot whose counts
        disagree with its contents raises SnapshotError and leaves the store
        untouched. Individual nodes or edges that the store rejects are
        skipped and logged.

        Args:
            snapshot: GraphSnapshot or its dictionary form.

        Returns:
            Counts of imported and skipped items.
        """
        if not isinstance(snapshot, GraphSnapshot):
            snapshot = parse_snapshot(snapshot)

        self.clear()
        report = ImportReport()

        for record in snapshot.nodes:
            try:
                self.add_node(record.to_node())
                report.nodes_imported += 1
            except KnowGraphError as e:
                report.nodes_skipped += 1
                logger.warning(f"Skipping node {record.id} on import: {e}")

        for record in snapshot.edges:
            try:
                self.add_edge(record.to_edge())
                report.edges_imported += 1
            except KnowGraphError as e:
                report.edges_skipped += 1
                logger.warning(
                    f"Skipping edge {record.from_id} -> {record.to_id} on import: {e}"
                )

        logger.info(
            f"Imported {report.nodes_imported} nodes and {report.edges_imported} edges"
        )
        return report
