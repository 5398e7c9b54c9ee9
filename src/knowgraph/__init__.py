"""knowgraph - an embeddable knowledge-graph engine.

A directed multigraph of typed data nodes joined by typed, weighted
relationships, with centrality metrics, structural-pattern mining and
content-similarity clustering over it.
"""

__version__ = "0.1.0"

from knowgraph.core import (
    EngineConfig,
    KnowGraphError,
)
from knowgraph.graph import (
    Cluster,
    Edge,
    EventBus,
    GraphEvent,
    GraphSnapshot,
    GraphStore,
    Node,
)

__all__ = [
    "__version__",
    # Config
    "EngineConfig",
    # Base exception
    "KnowGraphError",
    # Graph
    "GraphStore",
    "Node",
    "Edge",
    "Cluster",
    "GraphSnapshot",
    # Events
    "GraphEvent",
    "EventBus",
]
