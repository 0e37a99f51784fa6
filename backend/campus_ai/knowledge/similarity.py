"""Vector similarity scoring."""

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, in [-1, 1].

    Vectors of different length (e.g. an entry embedded with a previous
    embedding model) score 0.0 instead of raising. Empty or zero-norm vectors
    also score 0.0.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    norm = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0

    similarity = float(np.dot(vec_a, vec_b)) / norm
    return float(np.clip(similarity, -1.0, 1.0))
