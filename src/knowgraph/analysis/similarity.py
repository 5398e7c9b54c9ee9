"""
Content-similarity clustering.

Groups nodes by what they contain rather than how they are linked. Edges are
never consulted.

Pipeline:
1. Tokenize each node's content (lowercase, punctuation stripped, short
   tokens and stop words dropped)
2. Build a pairwise similarity matrix from weighted content, type and
   metadata similarity
3. Agglomerate: repeatedly merge the pair of clusters with the highest mean
   cross-pair similarity until the best merge falls below the threshold

Algorithm Complexity:
- Tokenization: O(V * L) where L is the content length
- Similarity matrix: O(V^2 * T) where T is the token set size
- Agglomeration: O(V^3) in the worst case (V merges, each scanning all pairs)

Mathematical Foundation:
- Jaccard: |A & B| / |A | B|
- Cosine (binary): |A & B| / sqrt(|A| * |B|)
- Dice: 2|A & B| / (|A| + |B|)
- sim(a, b) = w_c * content + w_t * [type(a) == type(b)] + w_m * metadata,
  clamped to [0, 1]
"""

import json
import logging
import math
import re
from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray

from knowgraph.core.config import SimilarityConfig
from knowgraph.core.constants import (
    MIN_TOKEN_LENGTH,
    STOP_WORDS,
    ClusterAlgorithm,
    SimilarityMethod,
)
from knowgraph.graph.models import Cluster, Node, clamp_unit


logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]", re.ASCII)
_MISSING = object()


def content_to_text(content: Any) -> str:
    """Render opaque node content as text."""
    if isinstance(content, str):
        return content
    try:
        return json.dumps(content, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(content)


def tokenize(text: str) -> set[str]:
    """Lowercased word tokens of at least three characters, minus stop words."""
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return {
        token
        for token in cleaned.split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS
    }


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """Intersection over union; 0 for two empty sets."""
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def cosine_similarity(a: set[str], b: set[str]) -> float:
    """Binary cosine similarity of two token sets."""
    denominator = math.sqrt(len(a) * len(b))
    return len(a & b) / denominator if denominator else 0.0


def dice_similarity(a: set[str], b: set[str]) -> float:
    """Dice coefficient of two token sets."""
    denominator = len(a) + len(b)
    return 2 * len(a & b) / denominator if denominator else 0.0


_SET_MEASURES = {
    SimilarityMethod.JACCARD.value: jaccard_similarity,
    SimilarityMethod.COSINE.value: cosine_similarity,
    SimilarityMethod.DICE.value: dice_similarity,
}


def content_similarity(a: set[str], b: set[str], method: str = SimilarityMethod.JACCARD.value) -> float:
    """
    Token-set similarity by the named method.

    Two empty sets are identical (1.0); one empty set matches nothing (0.0).
    Unknown methods use Jaccard.
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    measure = _SET_MEASURES.get(method, jaccard_similarity)
    return measure(a, b)


def metadata_similarity(a: Optional[dict[str, Any]], b: Optional[dict[str, Any]]) -> float:
    """Share of the union of keys whose values are equal in both mappings."""
    a = a or {}
    b = b or {}
    keys = set(a) | set(b)
    if not keys:
        return 1.0
    matches = sum(1 for key in keys if _strictly_equal(a.get(key, _MISSING), b.get(key, _MISSING)))
    return matches / len(keys)


def _strictly_equal(x: Any, y: Any) -> bool:
    """Equality without cross-type coercion, except between int and float."""
    numeric = (int, float)
    if (
        isinstance(x, numeric)
        and isinstance(y, numeric)
        and not isinstance(x, bool)
        and not isinstance(y, bool)
    ):
        return x == y
    return type(x) is type(y) and x == y


class SimilarityClusterer:
    """
    Hierarchical agglomerative clustering over node content.

    Example:
        clusterer = SimilarityClusterer(SimilarityConfig(threshold=0.5))
        clusters = clusterer.cluster(store.get_all_nodes())
    """

    def __init__(self, config: SimilarityConfig | None = None) -> None:
        """
        Initialize the clusterer.

        Args:
            config: Similarity configuration; invalid values are normalized
        """
        self._config = (config or SimilarityConfig()).normalized()

    @property
    def config(self) -> SimilarityConfig:
        """Return the normalized configuration."""
        return self._config

    def pairwise_similarity(self, a: Node, b: Node) -> float:
        """Weighted similarity of two nodes, clamped to [0, 1]."""
        return self._score(
            a,
            b,
            tokenize(content_to_text(a.content)),
            tokenize(content_to_text(b.content)),
        )

    def _score(self, a: Node, b: Node, tokens_a: set[str], tokens_b: set[str]) -> float:
        weights = self._config.weights
        total = content_similarity(tokens_a, tokens_b, self._config.method) * weights.content
        if self._config.consider_type and a.node_type == b.node_type:
            total += weights.type
        total += metadata_similarity(a.metadata, b.metadata) * weights.metadata
        return clamp_unit(total)

    def similarity_matrix(self, nodes: list[Node]) -> NDArray[np.float64]:
        """
        Symmetric pairwise similarity matrix with a unit diagonal.

        Args:
            nodes: Nodes in matrix order

        Returns:
            n x n array of similarities
        """
        n = len(nodes)
        tokens = [tokenize(content_to_text(node.content)) for node in nodes]
        matrix: NDArray[np.float64] = np.eye(n, dtype=np.float64)

        for i in range(n):
            for j in range(i + 1, n):
                value = self._score(nodes[i], nodes[j], tokens[i], tokens[j])
                matrix[i, j] = value
                matrix[j, i] = value

        return matrix

    def cluster(self, nodes: list[Node]) -> list[Cluster]:
        """
        Cluster nodes by content similarity.

        Args:
            nodes: Nodes to cluster

        Returns:
            Clusters whose coherence is their mean internal similarity. No
            nodes gives no clusters; a single node gives one cluster with
            coherence 1.0.
        """
        if not nodes:
            return []

        if len(nodes) == 1:
            return [
                Cluster(
                    id="cluster_000",
                    nodes=[nodes[0].id],
                    algorithm=ClusterAlgorithm.SIMILARITY.value,
                    coherence=1.0,
                    centroid=nodes[0].id,
                    avg_similarity=1.0,
                )
            ]

        matrix = self.similarity_matrix(nodes)
        groups = self._agglomerate(matrix)

        clusters: list[Cluster] = []
        for i, members in enumerate(groups):
            avg = clamp_unit(self._internal_similarity(matrix, members))
            clusters.append(
                Cluster(
                    id=f"cluster_{i:03d}",
                    nodes=[nodes[m].id for m in members],
                    algorithm=ClusterAlgorithm.SIMILARITY.value,
                    coherence=avg,
                    centroid=nodes[self._centroid(matrix, members)].id,
                    avg_similarity=avg,
                )
            )

        logger.debug(f"Clustered {len(nodes)} nodes into {len(clusters)} similarity clusters")
        return clusters

    def _agglomerate(self, matrix: NDArray[np.float64]) -> list[list[int]]:
        """Merge the most similar pair until no merge reaches the threshold."""
        groups: list[list[int]] = [[i] for i in range(matrix.shape[0])]
        threshold = self._config.threshold

        while len(groups) > 1:
            best: Optional[tuple[int, int]] = None
            best_similarity = 0.0
            for i in range(len(groups)):
                for j in range(i + 1, len(groups)):
                    similarity = float(matrix[np.ix_(groups[i], groups[j])].mean())
                    if similarity > best_similarity:
                        best_similarity = similarity
                        best = (i, j)

            if best is None or best_similarity < threshold:
                break

            i, j = best
            merged = groups[i] + groups[j]
            groups = [g for k, g in enumerate(groups) if k not in (i, j)]
            groups.append(merged)

        return groups

    @staticmethod
    def _internal_similarity(matrix: NDArray[np.float64], members: list[int]) -> float:
        if len(members) <= 1:
            return 1.0
        block = matrix[np.ix_(members, members)]
        upper = block[np.triu_indices(len(members), k=1)]
        return float(upper.mean())

    @staticmethod
    def _centroid(matrix: NDArray[np.float64], members: list[int]) -> int:
        """Member with the highest mean similarity to the others."""
        if len(members) == 1:
            return members[0]

        best = members[0]
        best_similarity = 0.0
        for candidate in members:
            others = [m for m in members if m != candidate]
            similarity = float(matrix[candidate, others].mean())
            if similarity > best_similarity:
                best_similarity = similarity
                best = candidate
        return best
