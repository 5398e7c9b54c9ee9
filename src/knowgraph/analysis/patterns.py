"""
Structural pattern mining.

Detects seven families of structural patterns in a directed multigraph and
scores each occurrence:
- star: a centre with three or more outgoing (or incoming) edges
- chain: a maximal strictly linear path of three or more nodes
- cycle: a simple directed cycle of three or more nodes
- tree: breadth-first out-edge expansion from a root
- bridge: a node whose neighbours are sparsely interconnected
- cluster: a greedily grown densely connected group
- hub: a node with unusually many connections

Algorithm Complexity:
- Star, hub, tree: O(V * P) where P is the pattern size cap
- Chain: O(V + E)
- Cycle: O(V * b^P) bounded depth-first search, b is the branching factor
- Bridge: O(V * k^2) where k is the neighbour count
- Cluster: O(V * P^2 * d) where d is the average degree

Mathematical Foundation:
- support(p) = |nodes(p)| / |V|
- confidence(p) = mean edge strength over edges(p) (0.7 for unknown edges)
- lift(p) = frequency / (support * confidence), 1 when the denominator is 0
- conviction(p) = (1 - support) / (1 - confidence), 1 when confidence is 1

All mining state is local to a single ``mine`` call.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from knowgraph.core.config import MiningConfig
from knowgraph.core.constants import (
    BRIDGE_INTERCONNECTION_RATIO,
    CLUSTER_DENSITY_THRESHOLD,
    DEFAULT_EDGE_CONFIDENCE,
    HUB_MIN_CONNECTIONS,
    HUB_NODE_FRACTION,
    MIN_CHAIN_LENGTH,
    MIN_CLUSTER_SIZE,
    MIN_CYCLE_LENGTH,
    MIN_STAR_EDGES,
    MIN_TREE_SIZE,
    PatternType,
)
from knowgraph.graph.models import Edge, Node, utc_now


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternEdge:
    """An edge reference inside a pattern."""

    from_id: str
    to_id: str
    edge_type: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"from_id": self.from_id, "to_id": self.to_id, "edge_type": self.edge_type}


@dataclass(frozen=True)
class GraphPattern:
    """
    One occurrence of a structural pattern.

    Attributes:
        id: Pattern identifier, unique within one mining call
        pattern_type: Pattern family
        description: Human-readable summary
        nodes: Ordered member node ids
        edges: Edges making up the pattern
        frequency: Occurrence count
        confidence: Mean edge strength
        support: Share of graph nodes covered
        lift: Observed over expected frequency (set after filtering)
        conviction: Confidence-complement ratio (set after filtering)
        contexts: Usage contexts
        last_seen: When the pattern was detected
    """

    id: str
    pattern_type: str
    description: str
    nodes: tuple[str, ...]
    edges: tuple[PatternEdge, ...]
    frequency: int = 1
    confidence: float = 0.0
    support: float = 0.0
    lift: Optional[float] = None
    conviction: Optional[float] = None
    contexts: tuple[str, ...] = ()
    last_seen: datetime = field(default_factory=utc_now)

    @property
    def size(self) -> int:
        """Number of member nodes."""
        return len(self.nodes)

    @property
    def quality(self) -> float:
        """Confidence times support."""
        return self.confidence * self.support

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "pattern_type": self.pattern_type,
            "description": self.description,
            "nodes": list(self.nodes),
            "edges": [e.to_dict() for e in self.edges],
            "frequency": self.frequency,
            "confidence": round(self.confidence, 4),
            "support": round(self.support, 4),
            "lift": round(self.lift, 4) if self.lift is not None else None,
            "conviction": round(self.conviction, 4) if self.conviction is not None else None,
            "contexts": list(self.contexts),
            "last_seen": self.last_seen.isoformat(),
        }


@dataclass
class PatternMiningResult:
    """
    Result of a mining call.

    Attributes:
        patterns: Patterns that passed the support and confidence filters
        total_nodes: Node count of the mined graph
        candidates_found: Patterns detected before filtering
        duration_ms: Time taken for mining
    """

    patterns: list[GraphPattern] = field(default_factory=list)
    total_nodes: int = 0
    candidates_found: int = 0
    duration_ms: float = 0.0

    @property
    def pattern_count(self) -> int:
        """Number of patterns returned."""
        return len(self.patterns)

    @property
    def type_distribution(self) -> dict[str, int]:
        """Pattern counts by family."""
        distribution: dict[str, int] = {}
        for pattern in self.patterns:
            distribution[pattern.pattern_type] = distribution.get(pattern.pattern_type, 0) + 1
        return distribution

    @property
    def avg_support(self) -> float:
        """Mean support over returned patterns."""
        if not self.patterns:
            return 0.0
        return sum(p.support for p in self.patterns) / len(self.patterns)

    @property
    def avg_confidence(self) -> float:
        """Mean confidence over returned patterns."""
        if not self.patterns:
            return 0.0
        return sum(p.confidence for p in self.patterns) / len(self.patterns)

    @property
    def coverage_percentage(self) -> float:
        """Percentage of graph nodes that belong to at least one pattern."""
        if self.total_nodes == 0:
            return 0.0
        covered = {nid for p in self.patterns for nid in p.nodes}
        return len(covered) / self.total_nodes * 100

    def by_type(self, pattern_type: str) -> list[GraphPattern]:
        """Patterns of one family."""
        return [p for p in self.patterns if p.pattern_type == pattern_type]

    def most_frequent(self, limit: int = 5) -> list[GraphPattern]:
        """Patterns with the highest frequency."""
        return sorted(self.patterns, key=lambda p: p.frequency, reverse=True)[:limit]

    def highest_quality(self, limit: int = 5) -> list[GraphPattern]:
        """Patterns with the highest confidence times support."""
        return sorted(self.patterns, key=lambda p: p.quality, reverse=True)[:limit]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "pattern_count": self.pattern_count,
            "candidates_found": self.candidates_found,
            "total_nodes": self.total_nodes,
            "type_distribution": self.type_distribution,
            "avg_support": round(self.avg_support, 4),
            "avg_confidence": round(self.avg_confidence, 4),
            "coverage_percentage": round(self.coverage_percentage, 2),
            "duration_ms": round(self.duration_ms, 2),
            "patterns": [p.to_dict() for p in self.patterns],
        }


class _MiningContext:
    """Per-call adjacency index and pattern id sequence."""

    def __init__(self, nodes: list[Node], edges: list[Edge]) -> None:
        self.node_ids: list[str] = list(dict.fromkeys(n.id for n in nodes))
        known = set(self.node_ids)

        self.out: dict[str, list[Edge]] = {nid: [] for nid in self.node_ids}
        self.inc: dict[str, list[Edge]] = {nid: [] for nid in self.node_ids}
        self.strengths: dict[tuple[str, str, str], Optional[float]] = {}

        for edge in edges:
            if edge.from_id not in known or edge.to_id not in known:
                continue
            self.out[edge.from_id].append(edge)
            self.inc[edge.to_id].append(edge)
            self.strengths.setdefault((edge.from_id, edge.to_id, edge.edge_type), edge.strength)

        self._sequence = 0

    @property
    def total_nodes(self) -> int:
        return len(self.node_ids)

    def both(self, node_id: str) -> list[Edge]:
        """Out-edges then in-edges, a self-loop reported once."""
        return self.out[node_id] + [e for e in self.inc[node_id] if not e.is_self_loop]

    def out_targets(self, node_id: str) -> list[str]:
        return list(dict.fromkeys(e.to_id for e in self.out[node_id]))

    def linked(self, a: str, b: str) -> bool:
        """True if an edge exists between two nodes in either direction."""
        return any(e.to_id == b for e in self.out[a]) or any(e.to_id == a for e in self.out[b])

    def first_edge(self, from_id: str, to_id: str) -> Optional[Edge]:
        for edge in self.out[from_id]:
            if edge.to_id == to_id:
                return edge
        return None

    def next_id(self, pattern_type: PatternType) -> str:
        self._sequence += 1
        return f"{pattern_type.value}-pattern_{self._sequence:04d}"

    def support(self, nodes: list[str]) -> float:
        return len(nodes) / self.total_nodes if self.total_nodes else 0.0

    def confidence(self, edges: list[PatternEdge]) -> float:
        if not edges:
            return 0.0
        total = 0.0
        for edge in edges:
            strength = self.strengths.get((edge.from_id, edge.to_id, edge.edge_type))
            total += DEFAULT_EDGE_CONFIDENCE if strength is None else strength
        return total / len(edges)


def _pattern_edge(edge: Edge) -> PatternEdge:
    return PatternEdge(from_id=edge.from_id, to_id=edge.to_id, edge_type=edge.edge_type)


class PatternMiner:
    """
    Mines structural patterns from a graph snapshot.

    Each enabled family is detected independently over the same snapshot;
    the candidates are merged, filtered by minimum support and confidence,
    and only then scored with lift and conviction. Every family caps its
    patterns at ``max_pattern_size`` nodes.

    Example:
        miner = PatternMiner(MiningConfig(max_pattern_size=4))
        result = miner.mine(store.get_all_nodes(), store.get_all_edges())
        for pattern in result.by_type("chain"):
            print(pattern.nodes)
    """

    def __init__(self, config: MiningConfig | None = None) -> None:
        """
        Initialize the miner.

        Args:
            config: Mining configuration; invalid values are normalized
        """
        self._config = (config or MiningConfig()).normalized()

    @property
    def config(self) -> MiningConfig:
        """Return the normalized configuration."""
        return self._config

    def mine(self, nodes: list[Node], edges: list[Edge]) -> PatternMiningResult:
        """
        Detect, filter and score patterns.

        Args:
            nodes: Graph nodes
            edges: Graph edges; edges with unknown endpoints are ignored

        Returns:
            PatternMiningResult with the surviving patterns
        """
        start_time = time.perf_counter()
        ctx = _MiningContext(nodes, edges)
        result = PatternMiningResult(total_nodes=ctx.total_nodes)

        detectors = {
            PatternType.STAR.value: self._mine_stars,
            PatternType.CHAIN.value: self._mine_chains,
            PatternType.CYCLE.value: self._mine_cycles,
            PatternType.TREE.value: self._mine_trees,
            PatternType.BRIDGE.value: self._mine_bridges,
            PatternType.CLUSTER.value: self._mine_clusters,
            PatternType.HUB.value: self._mine_hubs,
        }

        candidates: list[GraphPattern] = []
        for pattern_type in self._config.enabled_patterns:
            found = detectors[pattern_type](ctx)
            logger.debug(f"Found {len(found)} {pattern_type} candidates")
            candidates.extend(found)

        result.candidates_found = len(candidates)
        result.patterns = [
            self._score(p)
            for p in candidates
            if p.support >= self._config.min_support
            and p.confidence >= self._config.min_confidence
        ]

        result.duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Mined {result.pattern_count} of {result.candidates_found} patterns "
            f"over {ctx.total_nodes} nodes in {result.duration_ms:.1f}ms"
        )
        return result

    @staticmethod
    def _score(pattern: GraphPattern) -> GraphPattern:
        expected = pattern.support * pattern.confidence
        lift = pattern.frequency / expected if expected > 0 else 1.0
        not_confidence = 1 - pattern.confidence
        conviction = (1 - pattern.support) / not_confidence if not_confidence > 0 else 1.0
        return replace(pattern, lift=lift, conviction=conviction)

    def _build(
        self,
        ctx: _MiningContext,
        pattern_type: PatternType,
        description: str,
        nodes: list[str],
        edges: list[PatternEdge],
    ) -> GraphPattern:
        return GraphPattern(
            id=ctx.next_id(pattern_type),
            pattern_type=pattern_type.value,
            description=description,
            nodes=tuple(nodes),
            edges=tuple(edges),
            confidence=ctx.confidence(edges),
            support=ctx.support(nodes),
        )

    def _fan(self, center: str, edges: list[Edge]) -> tuple[list[str], list[PatternEdge]]:
        """Centre plus the far ends of up to ``max_pattern_size - 1`` edges."""
        nodes = [center]
        pattern_edges: list[PatternEdge] = []
        for edge in edges[: self._config.max_pattern_size - 1]:
            other = edge.other_end(center)
            if other not in nodes:
                nodes.append(other)
                pattern_edges.append(_pattern_edge(edge))
        return nodes, pattern_edges

    # =========================================================================
    # Detectors
    # =========================================================================

    def _mine_stars(self, ctx: _MiningContext) -> list[GraphPattern]:
        patterns: list[GraphPattern] = []
        for center in ctx.node_ids:
            for direction, edges in (("outgoing", ctx.out[center]), ("incoming", ctx.inc[center])):
                if len(edges) < MIN_STAR_EDGES:
                    continue
                nodes, pattern_edges = self._fan(center, edges)
                patterns.append(
                    self._build(
                        ctx,
                        PatternType.STAR,
                        f"Star pattern with center {center} and "
                        f"{len(pattern_edges)} {direction} connections",
                        nodes,
                        pattern_edges,
                    )
                )
        return patterns

    def _mine_chains(self, ctx: _MiningContext) -> list[GraphPattern]:
        """
        Strictly linear chains.

        A chain grows from a node only while that node has exactly one
        outgoing edge. Nodes reached as the sole successor of a linear node
        are tried as starts only after all other nodes, so each chain is
        reported from its head.
        """
        max_size = self._config.max_pattern_size
        continuations = {
            edges[0].to_id
            for edges in ctx.out.values()
            if len(edges) == 1 and not edges[0].is_self_loop
        }
        starts = [n for n in ctx.node_ids if n not in continuations]
        starts += [n for n in ctx.node_ids if n in continuations]

        visited: set[str] = set()
        patterns: list[GraphPattern] = []
        for start in starts:
            if start in visited:
                continue

            path = [start]
            edges: list[PatternEdge] = []
            while len(path) < max_size:
                outgoing = ctx.out[path[-1]]
                if len(outgoing) != 1:
                    break
                target = outgoing[0].to_id
                if target in path or target in visited:
                    break
                path.append(target)
                edges.append(_pattern_edge(outgoing[0]))

            if len(path) >= MIN_CHAIN_LENGTH:
                visited.update(path)
                patterns.append(
                    self._build(
                        ctx,
                        PatternType.CHAIN,
                        f"Chain pattern with {len(path)} nodes",
                        path,
                        edges,
                    )
                )
        return patterns

    def _find_cycle(self, ctx: _MiningContext, start: str, claimed: set[str]) -> Optional[list[str]]:
        """First simple cycle through ``start`` within the size cap."""
        max_size = self._config.max_pattern_size
        stack: list[list[str]] = [[start]]
        while stack:
            path = stack.pop()
            for target in reversed(ctx.out_targets(path[-1])):
                if target == start and len(path) >= MIN_CYCLE_LENGTH:
                    return path
            if len(path) >= max_size:
                continue
            for target in reversed(ctx.out_targets(path[-1])):
                if target != start and target not in path and target not in claimed:
                    stack.append(path + [target])
        return None

    def _mine_cycles(self, ctx: _MiningContext) -> list[GraphPattern]:
        claimed: set[str] = set()
        patterns: list[GraphPattern] = []
        if self._config.max_pattern_size < MIN_CYCLE_LENGTH:
            return patterns

        for start in ctx.node_ids:
            if start in claimed:
                continue
            cycle = self._find_cycle(ctx, start, claimed)
            if cycle is None:
                continue

            claimed.update(cycle)
            edges: list[PatternEdge] = []
            for i, node_id in enumerate(cycle):
                edge = ctx.first_edge(node_id, cycle[(i + 1) % len(cycle)])
                if edge is not None:
                    edges.append(_pattern_edge(edge))

            patterns.append(
                self._build(
                    ctx,
                    PatternType.CYCLE,
                    f"Cycle pattern with {len(cycle)} nodes",
                    cycle,
                    edges,
                )
            )
        return patterns

    def _mine_trees(self, ctx: _MiningContext) -> list[GraphPattern]:
        max_size = self._config.max_pattern_size
        patterns: list[GraphPattern] = []

        for root in ctx.node_ids:
            nodes = [root]
            edges: list[PatternEdge] = []
            seen = {root}
            queue = [root]
            head = 0
            while head < len(queue) and len(nodes) < max_size:
                current = queue[head]
                head += 1
                for edge in ctx.out[current]:
                    if edge.to_id in seen or len(nodes) >= max_size:
                        continue
                    seen.add(edge.to_id)
                    nodes.append(edge.to_id)
                    edges.append(_pattern_edge(edge))
                    queue.append(edge.to_id)

            if len(nodes) >= MIN_TREE_SIZE:
                patterns.append(
                    self._build(
                        ctx,
                        PatternType.TREE,
                        f"Tree pattern rooted at {root} with {len(nodes)} nodes",
                        nodes,
                        edges,
                    )
                )
        return patterns

    def _is_bridge(self, ctx: _MiningContext, node_id: str) -> bool:
        """Neighbours are sparsely linked to each other."""
        neighbors = list(
            dict.fromkeys(
                [e.to_id for e in ctx.out[node_id]] + [e.from_id for e in ctx.inc[node_id]]
            )
        )
        if node_id in neighbors:
            neighbors.remove(node_id)

        k = len(neighbors)
        possible = k * (k - 1) / 2
        if possible == 0:
            return False

        links = sum(
            1
            for i in range(k)
            for j in range(i + 1, k)
            if ctx.linked(neighbors[i], neighbors[j])
        )
        return links / possible < BRIDGE_INTERCONNECTION_RATIO

    def _mine_bridges(self, ctx: _MiningContext) -> list[GraphPattern]:
        patterns: list[GraphPattern] = []
        for node_id in ctx.node_ids:
            if not self._is_bridge(ctx, node_id):
                continue
            nodes, edges = self._fan(node_id, ctx.out[node_id] + ctx.inc[node_id])
            patterns.append(
                self._build(
                    ctx,
                    PatternType.BRIDGE,
                    f"Bridge pattern with node {node_id} connecting {len(nodes) - 1} neighbors",
                    nodes,
                    edges,
                )
            )
        return patterns

    @staticmethod
    def _cluster_density(ctx: _MiningContext, candidate: str, cluster: list[str]) -> float:
        members = set(cluster)
        connections = sum(1 for e in ctx.both(candidate) if e.other_end(candidate) in members)
        return connections / len(cluster)

    def _grow_cluster(self, ctx: _MiningContext, start: str) -> tuple[list[str], list[PatternEdge]]:
        """Greedy densest-first growth from ``start``."""
        cluster = [start]
        members = {start}
        edges: list[PatternEdge] = []

        while len(cluster) < self._config.max_pattern_size:
            best_node: Optional[str] = None
            best_density = 0.0

            for member in cluster:
                for edge in ctx.both(member):
                    candidate = edge.other_end(member)
                    if candidate in members:
                        continue
                    density = self._cluster_density(ctx, candidate, cluster)
                    if density > best_density:
                        best_density = density
                        best_node = candidate

            if best_node is None or best_density <= CLUSTER_DENSITY_THRESHOLD:
                break

            cluster.append(best_node)
            members.add(best_node)
            for edge in ctx.both(best_node):
                if edge.other_end(best_node) in members:
                    edges.append(_pattern_edge(edge))

        return cluster, edges

    def _mine_clusters(self, ctx: _MiningContext) -> list[GraphPattern]:
        visited: set[str] = set()
        patterns: list[GraphPattern] = []

        for node_id in ctx.node_ids:
            if node_id in visited:
                continue
            cluster, edges = self._grow_cluster(ctx, node_id)
            if len(cluster) < MIN_CLUSTER_SIZE:
                continue

            visited.update(cluster)
            patterns.append(
                self._build(
                    ctx,
                    PatternType.CLUSTER,
                    f"Dense cluster with {len(cluster)} nodes and {len(edges)} edges",
                    cluster,
                    edges,
                )
            )
        return patterns

    def _mine_hubs(self, ctx: _MiningContext) -> list[GraphPattern]:
        threshold = max(HUB_MIN_CONNECTIONS, int(ctx.total_nodes * HUB_NODE_FRACTION))
        patterns: list[GraphPattern] = []

        for node_id in ctx.node_ids:
            all_edges = ctx.both(node_id)
            if len(all_edges) < threshold:
                continue
            nodes, edges = self._fan(node_id, all_edges)
            patterns.append(
                self._build(
                    ctx,
                    PatternType.HUB,
                    f"Hub pattern with node {node_id} having {len(all_edges)} connections",
                    nodes,
                    edges,
                )
            )
        return patterns
