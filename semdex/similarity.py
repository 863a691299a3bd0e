"""Vector similarity metrics and bounded top-k selection."""

from enum import Enum
from typing import Sequence, Union

import numpy as np

from .errors import ValidationError

ArrayLike = Union[Sequence[float], np.ndarray]


class SimilarityMetric(str, Enum):
    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    DOT_PRODUCT = "dot_product"
    MANHATTAN = "manhattan"

    @classmethod
    def parse(cls, value: Union[str, "SimilarityMetric", None]) -> "SimilarityMetric":
        if value is None:
            return cls.COSINE
        try:
            return cls(value)
        except ValueError as e:
            supported = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown metric: {value!r}. Supported: {supported}") from e


def cosine_similarity(a: ArrayLike, b: ArrayLike) -> float:
    """Cosine of the angle between ``a`` and ``b``; 0 when either has zero magnitude."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def euclidean_distance(a: ArrayLike, b: ArrayLike) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def manhattan_distance(a: ArrayLike, b: ArrayLike) -> float:
    return float(np.abs(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)).sum())


def dot_product(a: ArrayLike, b: ArrayLike) -> float:
    return float(np.dot(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))


def similarity(a: ArrayLike, b: ArrayLike, metric: SimilarityMetric = SimilarityMetric.COSINE) -> float:
    """
    Similarity of two vectors under ``metric``.

    Distance metrics are mapped to similarities with ``1 / (1 + d)``.
    """
    metric = SimilarityMetric.parse(metric)
    if metric is SimilarityMetric.COSINE:
        return cosine_similarity(a, b)
    if metric is SimilarityMetric.EUCLIDEAN:
        return 1.0 / (1.0 + euclidean_distance(a, b))
    if metric is SimilarityMetric.MANHATTAN:
        return 1.0 / (1.0 + manhattan_distance(a, b))
    return dot_product(a, b)


def score_matrix(
    query: ArrayLike,
    matrix: np.ndarray,
    metric: SimilarityMetric = SimilarityMetric.COSINE,
) -> np.ndarray:
    """
    Score one query vector against every row of ``matrix``.

    Args:
        query: Vector of length D
        matrix: Array of shape (n, D)
        metric: Similarity metric

    Returns:
        Array of n similarities, aligned with the rows of ``matrix``
    """
    metric = SimilarityMetric.parse(metric)
    q = np.asarray(query, dtype=np.float64)
    if matrix.shape[0] == 0:
        return np.empty(0, dtype=np.float64)

    if metric is SimilarityMetric.COSINE:
        dots = matrix @ q
        denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
        return np.clip(scores, -1.0, 1.0)
    if metric is SimilarityMetric.EUCLIDEAN:
        return 1.0 / (1.0 + np.linalg.norm(matrix - q, axis=1))
    if metric is SimilarityMetric.MANHATTAN:
        return 1.0 / (1.0 + np.abs(matrix - q).sum(axis=1))
    return matrix @ q


def top_k(scores: np.ndarray, k: int, threshold: float = float("-inf")) -> np.ndarray:
    """
    Indices of the best ``k`` scores at or above ``threshold``.

    Uses ``argpartition`` to bound the work before sorting. Order is by
    score descending, ties broken by ascending index.
    """
    if k <= 0 or scores.size == 0:
        return np.empty(0, dtype=np.intp)

    candidates = np.flatnonzero(scores >= threshold)
    if candidates.size > k:
        part = np.argpartition(-scores[candidates], k - 1)[:k]
        kth = scores[candidates[part]].min()
        # keep every tie at the cut so ordering stays insertion-stable
        candidates = candidates[scores[candidates] >= kth]

    order = np.argsort(-scores[candidates], kind="stable")
    return candidates[order][:k]
