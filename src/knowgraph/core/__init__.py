"""Core configuration, constants and exceptions."""

from knowgraph.core.config import (
    CommunityConfig,
    EngineConfig,
    MetricsConfig,
    MiningConfig,
    SimilarityConfig,
    SimilarityWeights,
    TraversalConfig,
)
from knowgraph.core.constants import (
    CentralityType,
    ClusterAlgorithm,
    Direction,
    PatternType,
    SimilarityMethod,
)
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

__all__ = [
    # Config
    "EngineConfig",
    "CommunityConfig",
    "TraversalConfig",
    "MetricsConfig",
    "MiningConfig",
    "SimilarityConfig",
    "SimilarityWeights",
    # Enums
    "Direction",
    "ClusterAlgorithm",
    "CentralityType",
    "PatternType",
    "SimilarityMethod",
    # Exceptions
    "KnowGraphError",
    "ConfigurationError",
    "InvalidArgumentError",
    "InvalidNodeError",
    "InvalidEdgeError",
    "DuplicateIdError",
    "ReferentialIntegrityError",
    "NodeNotFoundError",
    "SnapshotError",
]
