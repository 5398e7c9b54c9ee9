"""
Graph metrics and structural analysis.

Computes node centralities, whole-graph statistics and structurally
important elements from a read-only node/edge snapshot.

Features:
- Degree, betweenness, closeness, PageRank and eigenvector centrality
- Density, average path length, diameter, clustering coefficient, modularity
- Small-world and scale-free heuristics
- Bridge edges, articulation points and hubs

Algorithm Complexity:
- Degree: O(1) per node after an O(E) index build
- Betweenness: O(V^2 * P) per node, where P is the bounded shortest-path
  enumeration (at most 5 nodes per path, at most 100 paths per pair)
- Closeness: O(V + E) per node using BFS
- PageRank / eigenvector: O(I * V^2) with I iterations of a dense matrix product
- Average path length / diameter: O(V * (V + E)) using one BFS per node

Mathematical Foundation:
- PageRank: PR(v) = (1 - d) / n + d * sum(PR(u) * c(u, v) / out(u)) over
  sources u, where c(u, v) counts edges u -> v
- Eigenvector: x(v) = sum(x(u)) over distinct u with an edge u -> v,
  L2-normalized after every iteration
- Betweenness: sum over unordered pairs (s, t) of sigma_st(v) / sigma_st,
  normalized by (n - 1)(n - 2) / 2
- Modularity: Q = sum_c [L_c / m - (D_c / 2m)^2] over connected components

Betweenness is a bounded approximation: shortest paths longer than five nodes
are never enumerated, so distant pairs contribute nothing.
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray

from knowgraph.core.config import MetricsConfig, int_or_default
from knowgraph.core.constants import DEFAULT_CENTRAL_NODE_COUNT, CentralityType
from knowgraph.graph.models import Edge, Node, clamp_unit


logger = logging.getLogger(__name__)


@dataclass
class NodeMetrics:
    """
    Centrality measures of a single node.

    Attributes:
        node_id: Node identifier
        degree: In-degree plus out-degree, multi-edges counted individually
        betweenness: Normalized approximate betweenness
        closeness: Reachable count over summed undirected distance
        pagerank: PageRank score
        eigenvector: Eigenvector centrality
        clustering_coefficient: Local clustering coefficient
    """

    node_id: str
    degree: int = 0
    betweenness: float = 0.0
    closeness: float = 0.0
    pagerank: float = 0.0
    eigenvector: float = 0.0
    clustering_coefficient: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_id": self.node_id,
            "degree": self.degree,
            "betweenness": round(self.betweenness, 6),
            "closeness": round(self.closeness, 6),
            "pagerank": round(self.pagerank, 6),
            "eigenvector": round(self.eigenvector, 6),
            "clustering_coefficient": round(self.clustering_coefficient, 6),
        }


@dataclass
class GraphMetrics:
    """
    Whole-graph statistics.

    Attributes:
        node_count: Number of nodes
        edge_count: Number of edges
        density: edges / (n * (n - 1))
        average_path_length: Mean undirected distance over reachable pairs
        diameter: Longest undirected distance over reachable pairs
        clustering_coefficient: Mean local clustering coefficient
        modularity: Modularity of the connected-component partition
        component_count: Number of undirected connected components
        duration_ms: Time taken for the calculation
    """

    node_count: int = 0
    edge_count: int = 0
    density: float = 0.0
    average_path_length: float = 0.0
    diameter: int = 0
    clustering_coefficient: float = 0.0
    modularity: float = 0.0
    component_count: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "density": round(self.density, 6),
            "average_path_length": round(self.average_path_length, 6),
            "diameter": self.diameter,
            "clustering_coefficient": round(self.clustering_coefficient, 6),
            "modularity": round(self.modularity, 6),
            "component_count": self.component_count,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class StructuralAnalysis:
    """Heuristic classification of the graph's shape."""

    has_small_world_property: bool = False
    is_scale_free: bool = False
    community_structure_strength: float = 0.0
    bridge_nodes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "has_small_world_property": self.has_small_world_property,
            "is_scale_free": self.is_scale_free,
            "community_structure_strength": round(self.community_structure_strength, 6),
            "bridge_nodes": list(self.bridge_nodes),
        }


@dataclass
class BridgeEdge:
    """An edge whose endpoints carry high betweenness."""

    from_id: str
    to_id: str
    importance: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "from_id": self.from_id,
            "to_id": self.to_id,
            "importance": round(self.importance, 6),
        }


@dataclass
class ArticulationPoint:
    """A node whose betweenness marks it as critical."""

    node_id: str
    importance: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"node_id": self.node_id, "importance": round(self.importance, 6)}


@dataclass
class HubNode:
    """A node whose degree is close to the maximum degree."""

    node_id: str
    degree: int
    importance: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_id": self.node_id,
            "degree": self.degree,
            "importance": round(self.importance, 6),
        }


@dataclass
class StructuralImportance:
    """Structurally important edges and nodes."""

    bridges: list[BridgeEdge] = field(default_factory=list)
    articulation_points: list[ArticulationPoint] = field(default_factory=list)
    hubs: list[HubNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "bridges": [b.to_dict() for b in self.bridges],
            "articulation_points": [a.to_dict() for a in self.articulation_points],
            "hubs": [h.to_dict() for h in self.hubs],
        }


@dataclass
class CentralNode:
    """A node ranked by one centrality measure."""

    node_id: str
    score: float
    centrality_type: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node_id": self.node_id,
            "score": round(self.score, 6),
            "centrality_type": self.centrality_type,
        }


class MetricsEngine:
    """
    Computes centralities and structural statistics over a graph snapshot.

    The engine indexes the snapshot once at construction: directed
    out-edge lists, in-degree counts and a deduplicated undirected
    neighbour list per node (a node is never its own neighbour). Edges
    whose endpoints are not in the node list are ignored.

    Results are memoized on the instance only; build a new engine after
    the graph changes.

    Example:
        engine = MetricsEngine(store.get_all_nodes(), store.get_all_edges())
        metrics = engine.calculate_graph_metrics()
        top = engine.find_central_nodes(3, "pagerank")
    """

    def __init__(
        self,
        nodes: list[Node],
        edges: list[Edge],
        config: MetricsConfig | None = None,
    ) -> None:
        """
        Index a snapshot.

        Args:
            nodes: Graph nodes
            edges: Graph edges
            config: Metric parameters; invalid values are normalized
        """
        self._config = (config or MetricsConfig()).normalized()
        self._node_ids: list[str] = list(dict.fromkeys(n.id for n in nodes))
        self._index: dict[str, int] = {nid: i for i, nid in enumerate(self._node_ids)}

        self._out_edges: dict[str, list[Edge]] = {nid: [] for nid in self._node_ids}
        self._in_degree: dict[str, int] = {nid: 0 for nid in self._node_ids}
        undirected: dict[str, dict[str, None]] = {nid: {} for nid in self._node_ids}

        self._edges: list[Edge] = []
        for edge in edges:
            if edge.from_id not in self._index or edge.to_id not in self._index:
                continue
            self._edges.append(edge)
            self._out_edges[edge.from_id].append(edge)
            self._in_degree[edge.to_id] += 1
            if not edge.is_self_loop:
                undirected[edge.from_id].setdefault(edge.to_id)
                undirected[edge.to_id].setdefault(edge.from_id)

        self._neighbors: dict[str, list[str]] = {
            nid: list(adj) for nid, adj in undirected.items()
        }
        self._neighbor_sets: dict[str, set[str]] = {
            nid: set(adj) for nid, adj in undirected.items()
        }

        self._betweenness: dict[str, float] = {}
        self._pagerank: Optional[dict[str, float]] = None
        self._eigenvector: Optional[dict[str, float]] = None
        self._distances: Optional[dict[str, dict[str, int]]] = None

    @property
    def config(self) -> MetricsConfig:
        """Return the normalized configuration."""
        return self._config

    @property
    def node_count(self) -> int:
        """Number of indexed nodes."""
        return len(self._node_ids)

    @property
    def edge_count(self) -> int:
        """Number of indexed edges."""
        return len(self._edges)

    # =========================================================================
    # Node centralities
    # =========================================================================

    def degree(self, node_id: str) -> int:
        """Out-degree plus in-degree."""
        if node_id not in self._index:
            return 0
        return len(self._out_edges[node_id]) + self._in_degree[node_id]

    def betweenness(self, node_id: str) -> float:
        """
        Approximate normalized betweenness centrality.

        For every unordered pair of other nodes, all shortest undirected
        paths of at most ``betweenness_max_path_nodes`` nodes are enumerated
        and the fraction passing through ``node_id`` is accumulated.
        """
        if node_id not in self._index:
            return 0.0
        cached = self._betweenness.get(node_id)
        if cached is not None:
            return cached

        n = self.node_count
        if n <= 2:
            self._betweenness[node_id] = 0.0
            return 0.0

        total = 0.0
        ids = self._node_ids
        for i in range(n):
            source = ids[i]
            if source == node_id:
                continue
            for j in range(i + 1, n):
                target = ids[j]
                if target == node_id:
                    continue
                paths = self._all_shortest_paths(source, target)
                if paths:
                    through = sum(1 for p in paths if node_id in p)
                    total += through / len(paths)

        normalization = (n - 1) * (n - 2) / 2
        value = total / normalization if normalization > 0 else 0.0
        self._betweenness[node_id] = value
        return value

    def closeness(self, node_id: str) -> float:
        """Reachable node count divided by summed undirected distance."""
        if node_id not in self._index or self.node_count <= 1:
            return 0.0
        distances = self._bfs_distances(node_id)
        reachable = [d for target, d in distances.items() if target != node_id]
        if not reachable:
            return 0.0
        return len(reachable) / sum(reachable)

    def pagerank(self) -> dict[str, float]:
        """
        PageRank by power iteration.

        Every node's new score is computed from the previous iteration's
        scores. Iteration stops when the largest per-node change is below
        the tolerance, and the final vector is rescaled to sum to 1.
        """
        if self._pagerank is not None:
            return dict(self._pagerank)

        n = self.node_count
        if n == 0:
            self._pagerank = {}
            return {}

        damping = self._config.damping_factor
        transition: NDArray[np.float64] = np.zeros((n, n), dtype=np.float64)
        for source, out in self._out_edges.items():
            if not out:
                continue
            s = self._index[source]
            share = 1.0 / len(out)
            for edge in out:
                transition[self._index[edge.to_id], s] += share

        rank: NDArray[np.float64] = np.full(n, 1.0 / n, dtype=np.float64)
        for iteration in range(self._config.max_iterations):
            updated = (1.0 - damping) / n + damping * (transition @ rank)
            change = float(np.max(np.abs(updated - rank)))
            rank = updated
            if change < self._config.tolerance:
                logger.debug(f"PageRank converged after {iteration + 1} iterations")
                break

        total = float(rank.sum())
        if total > 0:
            rank = rank / total

        self._pagerank = {nid: float(rank[i]) for i, nid in enumerate(self._node_ids)}
        return dict(self._pagerank)

    def eigenvector_centrality(self) -> dict[str, float]:
        """Eigenvector centrality by power iteration on in-edges."""
        if self._eigenvector is not None:
            return dict(self._eigenvector)

        n = self.node_count
        if n == 0:
            self._eigenvector = {}
            return {}

        adjacency: NDArray[np.float64] = np.zeros((n, n), dtype=np.float64)
        for edge in self._edges:
            adjacency[self._index[edge.to_id], self._index[edge.from_id]] = 1.0

        centrality: NDArray[np.float64] = np.ones(n, dtype=np.float64)
        for _ in range(self._config.max_iterations):
            values = adjacency @ centrality
            norm = float(np.linalg.norm(values))
            if norm == 0:
                norm = 1.0
            values = values / norm
            change = float(np.max(np.abs(values - centrality)))
            centrality = values
            if change < self._config.tolerance:
                break

        self._eigenvector = {nid: float(centrality[i]) for i, nid in enumerate(self._node_ids)}
        return dict(self._eigenvector)

    def local_clustering_coefficient(self, node_id: str) -> float:
        """Share of neighbour pairs that are themselves adjacent."""
        neighbors = self._neighbors.get(node_id, [])
        k = len(neighbors)
        if k < 2:
            return 0.0

        links = 0
        for i in range(k):
            adjacent = self._neighbor_sets[neighbors[i]]
            for j in range(i + 1, k):
                if neighbors[j] in adjacent:
                    links += 1

        return links / (k * (k - 1) / 2)

    def calculate_node_metrics(self, node_id: str) -> NodeMetrics:
        """All centralities of one node. Unknown ids get zero values."""
        if node_id not in self._index:
            return NodeMetrics(node_id=node_id)

        return NodeMetrics(
            node_id=node_id,
            degree=self.degree(node_id),
            betweenness=self.betweenness(node_id),
            closeness=self.closeness(node_id),
            pagerank=self.pagerank().get(node_id, 0.0),
            eigenvector=self.eigenvector_centrality().get(node_id, 0.0),
            clustering_coefficient=self.local_clustering_coefficient(node_id),
        )

    def calculate_all_node_metrics(self) -> list[NodeMetrics]:
        """Metrics for every node, in snapshot order."""
        return [self.calculate_node_metrics(nid) for nid in self._node_ids]

    # =========================================================================
    # Graph-level metrics
    # =========================================================================

    def density(self) -> float:
        """Edge count over the n(n - 1) possible directed edges."""
        n = self.node_count
        if n <= 1:
            return 0.0
        return self.edge_count / (n * (n - 1))

    def _pair_distances(self) -> list[int]:
        """Undirected distances of all reachable unordered pairs."""
        distances = self._all_distances()
        result: list[int] = []
        ids = self._node_ids
        for i in range(len(ids)):
            from_source = distances[ids[i]]
            for j in range(i + 1, len(ids)):
                d = from_source.get(ids[j])
                if d is not None and d > 0:
                    result.append(d)
        return result

    def average_path_length(self) -> float:
        """Mean distance over reachable pairs."""
        if self.node_count <= 1:
            return 0.0
        distances = self._pair_distances()
        return sum(distances) / len(distances) if distances else 0.0

    def diameter(self) -> int:
        """Longest distance over reachable pairs."""
        return max(self._pair_distances(), default=0)

    def global_clustering_coefficient(self) -> float:
        """Mean of the local clustering coefficients."""
        if not self._node_ids:
            return 0.0
        total = sum(self.local_clustering_coefficient(nid) for nid in self._node_ids)
        return total / self.node_count

    def connected_components(self) -> list[list[str]]:
        """Undirected connected components in snapshot order."""
        visited: set[str] = set()
        components: list[list[str]] = []

        for start in self._node_ids:
            if start in visited:
                continue
            component: list[str] = []
            queue = deque([start])
            visited.add(start)
            while queue:
                current = queue.popleft()
                component.append(current)
                for neighbor in self._neighbors[current]:
                    if neighbor not in visited:
                        visited.add(neighbor)
                        queue.append(neighbor)
            components.append(component)

        return components

    def modularity(self) -> float:
        """Newman modularity of the connected-component partition."""
        m = self.edge_count
        if m == 0:
            return 0.0

        q = 0.0
        for component in self.connected_components():
            members = set(component)
            internal = sum(
                1
                for nid in component
                for edge in self._out_edges[nid]
                if edge.to_id in members
            )
            degree_sum = sum(self.degree(nid) for nid in component)
            q += internal / m - (degree_sum / (2 * m)) ** 2
        return q

    def calculate_graph_metrics(self) -> GraphMetrics:
        """Compute all whole-graph statistics."""
        start_time = time.perf_counter()

        result = GraphMetrics(
            node_count=self.node_count,
            edge_count=self.edge_count,
            density=self.density(),
            average_path_length=self.average_path_length(),
            diameter=self.diameter(),
            clustering_coefficient=self.global_clustering_coefficient(),
            modularity=self.modularity(),
            component_count=len(self.connected_components()),
        )

        result.duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Graph metrics for {self.node_count} nodes in {result.duration_ms:.1f}ms")
        return result

    # =========================================================================
    # Structural analysis
    # =========================================================================

    def has_small_world_property(self) -> bool:
        """Short average paths combined with high clustering."""
        n = self.node_count
        if n == 0:
            return False
        avg = self.average_path_length()
        return (
            0 < avg < math.log(n)
            and self.global_clustering_coefficient() > self._config.small_world_clustering
        )

    def is_scale_free(self) -> bool:
        """Heavy-tail heuristic: max degree well above the mean degree."""
        if not self._node_ids:
            return False
        degrees = [self.degree(nid) for nid in self._node_ids]
        mean = sum(degrees) / len(degrees)
        return max(degrees) > mean * self._config.scale_free_ratio

    def find_bridge_nodes(self) -> list[str]:
        """Nodes whose betweenness exceeds the bridge threshold."""
        threshold = self._config.bridge_node_threshold
        return [nid for nid in self._node_ids if self.betweenness(nid) > threshold]

    def analyze_structure(self) -> StructuralAnalysis:
        """Classify the graph's overall shape."""
        return StructuralAnalysis(
            has_small_world_property=self.has_small_world_property(),
            is_scale_free=self.is_scale_free(),
            community_structure_strength=self.global_clustering_coefficient(),
            bridge_nodes=self.find_bridge_nodes(),
        )

    def find_bridge_edges(self) -> list[BridgeEdge]:
        """Edges whose endpoint-average betweenness exceeds the threshold."""
        bridges: list[BridgeEdge] = []
        threshold = self._config.bridge_edge_threshold

        for source in self._node_ids:
            for edge in self._out_edges[source]:
                importance = (self.betweenness(source) + self.betweenness(edge.to_id)) / 2
                if importance > threshold:
                    bridges.append(
                        BridgeEdge(
                            from_id=source,
                            to_id=edge.to_id,
                            importance=clamp_unit(importance),
                        )
                    )

        return bridges

    def find_articulation_points(self) -> list[ArticulationPoint]:
        """Nodes whose betweenness exceeds the articulation threshold."""
        threshold = self._config.articulation_threshold
        points: list[ArticulationPoint] = []
        for nid in self._node_ids:
            value = self.betweenness(nid)
            if value > threshold:
                points.append(ArticulationPoint(node_id=nid, importance=clamp_unit(value)))
        return points

    def find_hubs(self) -> list[HubNode]:
        """Nodes whose degree is at least ``hub_threshold`` of the maximum."""
        degrees = [(nid, self.degree(nid)) for nid in self._node_ids]
        max_degree = max((d for _, d in degrees), default=0)
        if max_degree == 0:
            return []

        cutoff = max_degree * self._config.hub_threshold
        return [
            HubNode(node_id=nid, degree=d, importance=clamp_unit(d / max_degree))
            for nid, d in degrees
            if d >= cutoff
        ]

    def get_structural_importance(self) -> StructuralImportance:
        """Collect bridge edges, articulation points and hubs."""
        return StructuralImportance(
            bridges=self.find_bridge_edges(),
            articulation_points=self.find_articulation_points(),
            hubs=self.find_hubs(),
        )

    def find_central_nodes(
        self,
        count: Optional[int] = None,
        centrality_type: str = CentralityType.PAGERANK.value,
    ) -> list[CentralNode]:
        """
        Rank nodes by one centrality measure.

        Args:
            count: Number of nodes to return (default 5)
            centrality_type: degree, betweenness, closeness, pagerank or
                eigenvector. Unknown names fall back to pagerank.

        Returns:
            Top nodes by descending score; ties keep snapshot order
        """
        if count is None:
            count = DEFAULT_CENTRAL_NODE_COUNT
        else:
            count = int_or_default(count, DEFAULT_CENTRAL_NODE_COUNT, "count", minimum=0)

        try:
            kind = CentralityType(centrality_type)
        except ValueError:
            logger.warning(
                f"Unsupported centrality type {centrality_type!r}, falling back to pagerank"
            )
            kind = CentralityType.PAGERANK

        if kind == CentralityType.DEGREE:
            scores = {nid: float(self.degree(nid)) for nid in self._node_ids}
        elif kind == CentralityType.BETWEENNESS:
            scores = {nid: self.betweenness(nid) for nid in self._node_ids}
        elif kind == CentralityType.CLOSENESS:
            scores = {nid: self.closeness(nid) for nid in self._node_ids}
        elif kind == CentralityType.EIGENVECTOR:
            scores = self.eigenvector_centrality()
        else:
            scores = self.pagerank()

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        return [
            CentralNode(node_id=nid, score=score, centrality_type=kind.value)
            for nid, score in ranked[:count]
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _bfs_distances(self, source: str) -> dict[str, int]:
        """Undirected hop distance from ``source`` to every reachable node."""
        distances = {source: 0}
        queue = deque([source])
        while queue:
            current = queue.popleft()
            for neighbor in self._neighbors[current]:
                if neighbor not in distances:
                    distances[neighbor] = distances[current] + 1
                    queue.append(neighbor)
        return distances

    def _all_distances(self) -> dict[str, dict[str, int]]:
        if self._distances is None:
            self._distances = {nid: self._bfs_distances(nid) for nid in self._node_ids}
        return self._distances

    def _all_shortest_paths(self, source: str, target: str) -> list[list[str]]:
        """
        Enumerate shortest undirected paths between two nodes.

        Breadth-first over partial paths, each carrying its own visited set.
        Paths longer than ``betweenness_max_path_nodes`` nodes are dropped
        and the search stops once ``betweenness_path_limit`` paths are held.
        """
        if source == target:
            return [[source]]

        max_nodes = self._config.betweenness_max_path_nodes
        limit = self._config.betweenness_path_limit
        paths: list[list[str]] = []
        shortest = math.inf
        queue: deque[tuple[list[str], frozenset[str]]] = deque(
            [([source], frozenset([source]))]
        )

        while queue and len(paths) < limit:
            path, visited = queue.popleft()
            if len(path) > max_nodes or len(path) > shortest:
                continue

            current = path[-1]
            if current == target:
                if len(path) < shortest:
                    shortest = len(path)
                    paths.clear()
                paths.append(path)
                continue

            for neighbor in self._neighbors[current]:
                if neighbor not in visited:
                    queue.append((path + [neighbor], visited | {neighbor}))

        return paths
