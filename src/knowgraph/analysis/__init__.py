"""
Graph analytics.

Provides read-only analysis over node/edge snapshots:
- LouvainDetector: modularity-optimizing community detection
- MetricsEngine: centralities, graph statistics, structural importance
- PatternMiner: star, chain, cycle, tree, bridge, cluster and hub patterns
- SimilarityClusterer: agglomerative clustering by content similarity
"""

from knowgraph.analysis.community import LouvainDetector
from knowgraph.analysis.metrics import (
    ArticulationPoint,
    BridgeEdge,
    CentralNode,
    GraphMetrics,
    HubNode,
    MetricsEngine,
    NodeMetrics,
    StructuralAnalysis,
    StructuralImportance,
)
from knowgraph.analysis.patterns import (
    GraphPattern,
    PatternEdge,
    PatternMiner,
    PatternMiningResult,
)
from knowgraph.analysis.similarity import (
    SimilarityClusterer,
    content_similarity,
    cosine_similarity,
    dice_similarity,
    jaccard_similarity,
    metadata_similarity,
    tokenize,
)

__all__ = [
    # Community detection
    "LouvainDetector",
    # Metrics
    "MetricsEngine",
    "NodeMetrics",
    "GraphMetrics",
    "StructuralAnalysis",
    "StructuralImportance",
    "BridgeEdge",
    "ArticulationPoint",
    "HubNode",
    "CentralNode",
    # Patterns
    "PatternMiner",
    "PatternMiningResult",
    "GraphPattern",
    "PatternEdge",
    # Similarity
    "SimilarityClusterer",
    "tokenize",
    "jaccard_similarity",
    "cosine_similarity",
    "dice_similarity",
    "content_similarity",
    "metadata_similarity",
]
