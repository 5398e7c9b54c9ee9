"""knowgraph constants and default values."""

from enum import Enum
from typing import Final


class Direction(str, Enum):
    """Edge direction relative to a node."""

    IN = "in"
    OUT = "out"
    BOTH = "both"


class ClusterAlgorithm(str, Enum):
    """Algorithms accepted by GraphStore.cluster_nodes."""

    COMMUNITY = "community"
    LOUVAIN = "louvain"
    SIMILARITY = "similarity"


class CentralityType(str, Enum):
    """Centrality measures supported by find_central_nodes."""

    DEGREE = "degree"
    BETWEENNESS = "betweenness"
    CLOSENESS = "closeness"
    PAGERANK = "pagerank"
    EIGENVECTOR = "eigenvector"


class PatternType(str, Enum):
    """Structural pattern families mined by PatternMiner."""

    STAR = "star"
    CHAIN = "chain"
    CYCLE = "cycle"
    TREE = "tree"
    BRIDGE = "bridge"
    CLUSTER = "cluster"
    HUB = "hub"


class SimilarityMethod(str, Enum):
    """Token-set similarity measures."""

    JACCARD = "jaccard"
    COSINE = "cosine"
    DICE = "dice"


# Snapshot format
SNAPSHOT_VERSION: Final[str] = "1.0.0"

# Edges
DEFAULT_EDGE_STRENGTH: Final[float] = 1.0

# Traversal
DEFAULT_MAX_PATH_DEPTH: Final[int] = 5
MAX_PATH_DEPTH_LIMIT: Final[int] = 10
DEFAULT_SUBGRAPH_DEPTH: Final[int] = 2

# Centrality
DEFAULT_DAMPING_FACTOR: Final[float] = 0.85
DEFAULT_MAX_ITERATIONS: Final[int] = 100
DEFAULT_TOLERANCE: Final[float] = 1e-6
BETWEENNESS_MAX_PATH_NODES: Final[int] = 5
BETWEENNESS_PATH_LIMIT: Final[int] = 100
DEFAULT_CENTRAL_NODE_COUNT: Final[int] = 5

# Structural thresholds
BRIDGE_NODE_THRESHOLD: Final[float] = 0.1
BRIDGE_EDGE_THRESHOLD: Final[float] = 0.05
ARTICULATION_THRESHOLD: Final[float] = 0.1
HUB_DEGREE_RATIO: Final[float] = 0.8
SMALL_WORLD_CLUSTERING: Final[float] = 0.3
SCALE_FREE_RATIO: Final[float] = 3.0

# Pattern mining
DEFAULT_MIN_SUPPORT: Final[float] = 0.1
DEFAULT_MIN_CONFIDENCE: Final[float] = 0.3
DEFAULT_MAX_PATTERN_SIZE: Final[int] = 5
DEFAULT_EDGE_CONFIDENCE: Final[float] = 0.7
MIN_STAR_EDGES: Final[int] = 3
MIN_CHAIN_LENGTH: Final[int] = 3
MIN_CYCLE_LENGTH: Final[int] = 3
MIN_TREE_SIZE: Final[int] = 3
MIN_CLUSTER_SIZE: Final[int] = 3
BRIDGE_INTERCONNECTION_RATIO: Final[float] = 0.25
CLUSTER_DENSITY_THRESHOLD: Final[float] = 0.3
HUB_MIN_CONNECTIONS: Final[int] = 3
HUB_NODE_FRACTION: Final[float] = 0.05

# Louvain community detection
DEFAULT_RESOLUTION: Final[float] = 1.0
DEFAULT_MIN_COMMUNITY_SIZE: Final[int] = 1
DEFAULT_LOUVAIN_ITERATIONS: Final[int] = 200
DEFAULT_RANDOM_SEED: Final[int] = 12345

# Similarity clustering
DEFAULT_SIMILARITY_THRESHOLD: Final[float] = 0.3
DEFAULT_CONTENT_WEIGHT: Final[float] = 0.6
DEFAULT_TYPE_WEIGHT: Final[float] = 0.3
DEFAULT_METADATA_WEIGHT: Final[float] = 0.1
MIN_TOKEN_LENGTH: Final[int] = 3

STOP_WORDS: Final[frozenset[str]] = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can",
    "a", "an", "this", "that", "these", "those", "i", "you", "he",
    "she", "it", "we", "they", "me", "him", "her", "us", "them",
})
