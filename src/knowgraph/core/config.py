"""knowgraph configuration loading and validation.

Analytics configuration follows a fallback-over-failure policy: a value that is
out of range or of the wrong type is replaced by its documented default (with a
warning) by ``normalized()``. Only an unreadable configuration *file* raises.
"""

import json
import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Self

from knowgraph.core.constants import (
    ARTICULATION_THRESHOLD,
    BETWEENNESS_MAX_PATH_NODES,
    BETWEENNESS_PATH_LIMIT,
    BRIDGE_EDGE_THRESHOLD,
    BRIDGE_NODE_THRESHOLD,
    DEFAULT_CONTENT_WEIGHT,
    DEFAULT_DAMPING_FACTOR,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_PATH_DEPTH,
    DEFAULT_MAX_PATTERN_SIZE,
    DEFAULT_METADATA_WEIGHT,
    DEFAULT_MIN_CONFIDENCE,
    DEFAULT_MIN_COMMUNITY_SIZE,
    DEFAULT_LOUVAIN_ITERATIONS,
    DEFAULT_MIN_SUPPORT,
    DEFAULT_RANDOM_SEED,
    DEFAULT_RESOLUTION,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_SUBGRAPH_DEPTH,
    DEFAULT_TOLERANCE,
    DEFAULT_TYPE_WEIGHT,
    HUB_DEGREE_RATIO,
    MAX_PATH_DEPTH_LIMIT,
    SCALE_FREE_RATIO,
    SMALL_WORLD_CLUSTERING,
    PatternType,
    SimilarityMethod,
)
from knowgraph.core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

ALL_PATTERN_TYPES: tuple[str, ...] = tuple(p.value for p in PatternType)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def fraction_or_default(value: Any, default: float, name: str) -> float:
    """Return ``value`` if it is a number in [0, 1], else ``default``."""
    if _is_number(value) and 0.0 <= value <= 1.0:
        return float(value)
    logger.warning(f"Invalid {name}={value!r}, falling back to {default}")
    return default


def int_or_default(
    value: Any,
    default: int,
    name: str,
    minimum: int = 0,
    maximum: int | None = None,
) -> int:
    """Return ``value`` if it is an int within bounds, else ``default``."""
    if _is_int(value) and value >= minimum and (maximum is None or value <= maximum):
        return value
    logger.warning(f"Invalid {name}={value!r}, falling back to {default}")
    return default


def _positive_or_default(value: Any, default: float, name: str) -> float:
    if _is_number(value) and value > 0:
        return float(value)
    logger.warning(f"Invalid {name}={value!r}, falling back to {default}")
    return default


@dataclass(frozen=True)
class TraversalConfig:
    """Path enumeration and subgraph defaults."""

    default_max_depth: int = DEFAULT_MAX_PATH_DEPTH
    max_depth_limit: int = MAX_PATH_DEPTH_LIMIT
    default_subgraph_depth: int = DEFAULT_SUBGRAPH_DEPTH

    def normalized(self) -> "TraversalConfig":
        """Return a copy with invalid values replaced by defaults."""
        limit = int_or_default(
            self.max_depth_limit, MAX_PATH_DEPTH_LIMIT, "max_depth_limit", minimum=1
        )
        return TraversalConfig(
            default_max_depth=int_or_default(
                self.default_max_depth,
                min(DEFAULT_MAX_PATH_DEPTH, limit),
                "default_max_depth",
                minimum=1,
                maximum=limit,
            ),
            max_depth_limit=limit,
            default_subgraph_depth=int_or_default(
                self.default_subgraph_depth,
                DEFAULT_SUBGRAPH_DEPTH,
                "default_subgraph_depth",
                minimum=0,
                maximum=limit,
            ),
        )


@dataclass(frozen=True)
class MetricsConfig:
    """Centrality and structural-analysis parameters."""

    damping_factor: float = DEFAULT_DAMPING_FACTOR
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    betweenness_max_path_nodes: int = BETWEENNESS_MAX_PATH_NODES
    betweenness_path_limit: int = BETWEENNESS_PATH_LIMIT
    bridge_node_threshold: float = BRIDGE_NODE_THRESHOLD
    bridge_edge_threshold: float = BRIDGE_EDGE_THRESHOLD
    articulation_threshold: float = ARTICULATION_THRESHOLD
    hub_threshold: float = HUB_DEGREE_RATIO
    small_world_clustering: float = SMALL_WORLD_CLUSTERING
    scale_free_ratio: float = SCALE_FREE_RATIO

    def normalized(self) -> "MetricsConfig":
        """Return a copy with invalid values replaced by defaults."""
        return MetricsConfig(
            damping_factor=fraction_or_default(
                self.damping_factor, DEFAULT_DAMPING_FACTOR, "damping_factor"
            ),
            max_iterations=int_or_default(
                self.max_iterations, DEFAULT_MAX_ITERATIONS, "max_iterations", minimum=1
            ),
            tolerance=_positive_or_default(self.tolerance, DEFAULT_TOLERANCE, "tolerance"),
            betweenness_max_path_nodes=int_or_default(
                self.betweenness_max_path_nodes,
                BETWEENNESS_MAX_PATH_NODES,
                "betweenness_max_path_nodes",
                minimum=2,
            ),
            betweenness_path_limit=int_or_default(
                self.betweenness_path_limit,
                BETWEENNESS_PATH_LIMIT,
                "betweenness_path_limit",
                minimum=1,
            ),
            bridge_node_threshold=fraction_or_default(
                self.bridge_node_threshold, BRIDGE_NODE_THRESHOLD, "bridge_node_threshold"
            ),
            bridge_edge_threshold=fraction_or_default(
                self.bridge_edge_threshold, BRIDGE_EDGE_THRESHOLD, "bridge_edge_threshold"
            ),
            articulation_threshold=fraction_or_default(
                self.articulation_threshold, ARTICULATION_THRESHOLD, "articulation_threshold"
            ),
            hub_threshold=fraction_or_default(
                self.hub_threshold, HUB_DEGREE_RATIO, "hub_threshold"
            ),
            small_world_clustering=fraction_or_default(
                self.small_world_clustering, SMALL_WORLD_CLUSTERING, "small_world_clustering"
            ),
            scale_free_ratio=_positive_or_default(
                self.scale_free_ratio, SCALE_FREE_RATIO, "scale_free_ratio"
            ),
        )


@dataclass(frozen=True)
class MiningConfig:
    """
    Pattern mining configuration.

    Attributes:
        min_support: Minimum support (pattern nodes / total nodes) to keep a pattern
        min_confidence: Minimum mean edge strength to keep a pattern
        max_pattern_size: Ceiling on the node count of any emitted pattern
        enabled_patterns: Pattern families to mine
    """

    min_support: float = DEFAULT_MIN_SUPPORT
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
    max_pattern_size: int = DEFAULT_MAX_PATTERN_SIZE
    enabled_patterns: tuple[str, ...] = ALL_PATTERN_TYPES

    def normalized(self) -> "MiningConfig":
        """Return a copy with invalid values replaced by defaults."""
        enabled: list[str] = []
        raw = self.enabled_patterns
        if isinstance(raw, str) or not isinstance(raw, (list, tuple, set, frozenset)):
            logger.warning(f"Invalid enabled_patterns={raw!r}, enabling all pattern types")
            raw = ALL_PATTERN_TYPES
        for name in raw:
            value = name.value if isinstance(name, PatternType) else name
            if value in ALL_PATTERN_TYPES:
                if value not in enabled:
                    enabled.append(value)
            else:
                logger.warning(f"Ignoring unknown pattern type {name!r}")

        return MiningConfig(
            min_support=fraction_or_default(
                self.min_support, DEFAULT_MIN_SUPPORT, "min_support"
            ),
            min_confidence=fraction_or_default(
                self.min_confidence, DEFAULT_MIN_CONFIDENCE, "min_confidence"
            ),
            max_pattern_size=int_or_default(
                self.max_pattern_size, DEFAULT_MAX_PATTERN_SIZE, "max_pattern_size", minimum=1
            ),
            enabled_patterns=tuple(enabled),
        )


@dataclass(frozen=True)
class SimilarityWeights:
    """Weights of the three similarity components. Not renormalized."""

    content: float = DEFAULT_CONTENT_WEIGHT
    type: float = DEFAULT_TYPE_WEIGHT
    metadata: float = DEFAULT_METADATA_WEIGHT


@dataclass(frozen=True)
class SimilarityConfig:
    """
    Similarity clustering configuration.

    Attributes:
        threshold: Minimum mean similarity for two clusters to merge
        method: Content similarity measure (jaccard, cosine, dice)
        consider_type: Whether identical node types contribute similarity
        weights: Component weights for content, type and metadata
    """

    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    method: str = SimilarityMethod.JACCARD.value
    consider_type: bool = True
    weights: SimilarityWeights = field(default_factory=SimilarityWeights)

    def normalized(self) -> "SimilarityConfig":
        """Return a copy with invalid values replaced by defaults."""
        method = self.method.value if isinstance(self.method, SimilarityMethod) else self.method
        if method not in {m.value for m in SimilarityMethod}:
            logger.warning(
                f"Unsupported similarity method {self.method!r}, falling back to jaccard"
            )
            method = SimilarityMethod.JACCARD.value

        weights = self.weights if isinstance(self.weights, SimilarityWeights) else SimilarityWeights()
        defaults = SimilarityWeights()
        clean_weights = {}
        for f in fields(SimilarityWeights):
            value = getattr(weights, f.name)
            if _is_number(value) and value >= 0:
                clean_weights[f.name] = float(value)
            else:
                logger.warning(f"Invalid {f.name} weight={value!r}, falling back to default")
                clean_weights[f.name] = getattr(defaults, f.name)

        return SimilarityConfig(
            threshold=fraction_or_default(
                self.threshold, DEFAULT_SIMILARITY_THRESHOLD, "similarity threshold"
            ),
            method=method,
            consider_type=bool(self.consider_type),
            weights=SimilarityWeights(**clean_weights),
        )


@dataclass(frozen=True)
class CommunityConfig:
    """
    Louvain community detection configuration.

    Attributes:
        resolution: Modularity resolution; larger values favour smaller communities
        min_community_size: Communities with fewer members are not reported
        max_iterations: Ceiling on local-move passes per level
        random_seed: Seed for the node visiting order
    """

    resolution: float = DEFAULT_RESOLUTION
    min_community_size: int = DEFAULT_MIN_COMMUNITY_SIZE
    max_iterations: int = DEFAULT_LOUVAIN_ITERATIONS
    random_seed: int = DEFAULT_RANDOM_SEED

    def normalized(self) -> "CommunityConfig":
        """Return a copy with invalid values replaced by defaults."""
        return CommunityConfig(
            resolution=_positive_or_default(self.resolution, DEFAULT_RESOLUTION, "resolution"),
            min_community_size=int_or_default(
                self.min_community_size,
                DEFAULT_MIN_COMMUNITY_SIZE,
                "min_community_size",
                minimum=1,
            ),
            max_iterations=int_or_default(
                self.max_iterations, DEFAULT_LOUVAIN_ITERATIONS, "max_iterations", minimum=1
            ),
            random_seed=int_or_default(
                self.random_seed, DEFAULT_RANDOM_SEED, "random_seed", minimum=0
            ),
        )


@dataclass(frozen=True)
class EngineConfig:
    """Complete knowgraph configuration."""

    version: str = "1.0"
    traversal: TraversalConfig = field(default_factory=TraversalConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    mining: MiningConfig = field(default_factory=MiningConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)
    community: CommunityConfig = field(default_factory=CommunityConfig)

    def normalized(self) -> "EngineConfig":
        """Return a copy where every section has been normalized."""
        return replace(
            self,
            traversal=self.traversal.normalized(),
            metrics=self.metrics.normalized(),
            mining=self.mining.normalized(),
            similarity=self.similarity.normalized(),
            community=self.community.normalized(),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from dictionary."""
        mining = dict(data.get("mining", {}))
        if "enabled_patterns" in mining:
            mining["enabled_patterns"] = tuple(mining["enabled_patterns"])

        similarity = dict(data.get("similarity", {}))
        if "weights" in similarity:
            similarity["weights"] = SimilarityWeights(**similarity["weights"])

        return cls(
            version=data.get("version", "1.0"),
            traversal=TraversalConfig(**data.get("traversal", {})),
            metrics=MetricsConfig(**data.get("metrics", {})),
            mining=MiningConfig(**mining),
            similarity=SimilarityConfig(**similarity),
            community=CommunityConfig(**data.get("community", {})),
        )

    @classmethod
    def load(cls, config_path: Path) -> Self:
        """Load configuration from a JSON file, or use defaults if it is absent."""
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.from_dict(data).normalized()
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {e}",
                details={"path": str(config_path)},
            ) from e
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(
                f"Invalid configuration values: {e}",
                details={"path": str(config_path)},
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "version": self.version,
            "traversal": {
                "default_max_depth": self.traversal.default_max_depth,
                "max_depth_limit": self.traversal.max_depth_limit,
                "default_subgraph_depth": self.traversal.default_subgraph_depth,
            },
            "metrics": {f.name: getattr(self.metrics, f.name) for f in fields(MetricsConfig)},
            "mining": {
                "min_support": self.mining.min_support,
                "min_confidence": self.mining.min_confidence,
                "max_pattern_size": self.mining.max_pattern_size,
                "enabled_patterns": list(self.mining.enabled_patterns),
            },
            "similarity": {
                "threshold": self.similarity.threshold,
                "method": self.similarity.method,
                "consider_type": self.similarity.consider_type,
                "weights": {
                    "content": self.similarity.weights.content,
                    "type": self.similarity.weights.type,
                    "metadata": self.similarity.weights.metadata,
                },
            },
            "community": {f.name: getattr(self.community, f.name) for f in fields(CommunityConfig)},
        }

    def save(self, config_path: Path) -> None:
        """Save configuration to a JSON file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
