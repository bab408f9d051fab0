"""Vector math shared by the route layer and the index backends."""

from typing import Sequence

import numpy as np

Vector = Sequence[float]


def as_matrix(vectors: Sequence[Vector]) -> np.ndarray:
    """Convert a list of equal-width vectors to a 2-D float64 array.

    Raises:
        ValueError: If the rows do not share one width.
    """
    if len(vectors) == 0:
        return np.empty((0, 0), dtype=np.float64)
    widths = {len(row) for row in vectors}
    if len(widths) > 1:
        raise ValueError(f"Embedding rows have inconsistent widths: {sorted(widths)}")
    return np.asarray(vectors, dtype=np.float64).reshape(len(vectors), -1)


def normalize(vector: Vector) -> np.ndarray:
    """Scale a vector to unit length. Zero vectors are returned unchanged."""
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0 or not np.isfinite(norm):
        return np.nan_to_num(arr)
    return arr / norm


def normalize_rows(vectors: Sequence[Vector]) -> np.ndarray:
    """Scale every row of a matrix to unit length."""
    matrix = as_matrix(vectors)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return np.nan_to_num(matrix / norms)


def clamp_scores(scores: np.ndarray) -> np.ndarray:
    """Replace NaN with 0 and clip similarities to [-1, 1]."""
    return np.clip(np.nan_to_num(scores, nan=0.0), -1.0, 1.0)


def cosine_similarity(vec1: Vector, vec2: Vector) -> float:
    """Cosine similarity of two vectors, 0.0 when either has no magnitude."""
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    denominator = np.linalg.norm(a) * np.linalg.norm(b)
    if denominator == 0:
        return 0.0
    return float(clamp_scores(np.asarray(np.dot(a, b) / denominator)))


def combine_embeddings(embeddings: Sequence[Vector]) -> list[float]:
    """Element-wise mean of a set of embeddings.

    Public helper for callers that want one centroid per route, e.g. to seed
    an external store or compare routes; routing itself scores individual
    utterances and never calls it.
    """
    return as_matrix(embeddings).mean(axis=0).tolist()


def sum_vectors(vectors: Sequence[Vector]) -> list[float]:
    """Element-wise sum of a set of vectors.

    Public helper exported with ``combine_embeddings``; not used by routing.
    """
    return as_matrix(vectors).sum(axis=0).tolist()
