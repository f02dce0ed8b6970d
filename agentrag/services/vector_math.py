"""Vector helpers for embedding similarity."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 instead of raising when either vector is missing or empty,
    the lengths differ, or either magnitude is zero, so a single bad vector
    can't abort a ranking pass.
    """
    if a is None or b is None or len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def cosine_similarities(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> list[float]:
    """Score every row of ``vectors`` against ``query`` in one pass.

    Rows whose length differs from the query, and zero-magnitude rows,
    score 0.0.
    """
    if query is None or len(query) == 0 or not vectors:
        return [0.0] * len(vectors or [])

    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    if q_norm == 0:
        return [0.0] * len(vectors)

    scores = np.zeros(len(vectors), dtype=np.float64)
    rows = [i for i, v in enumerate(vectors) if v is not None and len(v) == len(q)]
    if not rows:
        return scores.tolist()

    matrix = np.asarray([vectors[i] for i in rows], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / (norms * q_norm), 0.0)
    scores[rows] = sims
    return scores.tolist()
