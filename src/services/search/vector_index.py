"""Cosine-similarity ranking over stored chunk embeddings.

Pure and read-only: ranking never mutates the chunks it is given.  Ties in
score keep the order the candidates were passed in (insertion order from
the store), because Python's sort is stable.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import structlog

from src.models.knowledge import DocumentChunk, ScoredChunk

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_TOP_K = 5


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``(a·b) / (‖a‖·‖b‖)`` clamped to ``[-1, 1]``.

    Returns 0.0 when either vector has zero norm, is empty, or the two
    vectors differ in dimension.
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm_product = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm_product == 0.0:
        return 0.0
    score = float(np.dot(vec_a, vec_b)) / norm_product
    # Floating-point error can push a parallel pair just past 1.0.
    return max(-1.0, min(1.0, score))


class VectorIndex:
    """Top-K nearest-neighbour ranking by cosine similarity."""

    def rank(
        self,
        query_embedding: Sequence[float],
        candidates: Sequence[DocumentChunk],
        top_k: int = DEFAULT_TOP_K,
    ) -> list[ScoredChunk]:
        """Score every candidate and return the best *top_k*, best first.

        Candidates without an embedding are skipped.
        """
        if top_k <= 0 or not query_embedding:
            return []

        scored: list[ScoredChunk] = []
        mismatched = 0
        for chunk in candidates:
            if not chunk.has_embedding:
                continue
            if len(chunk.embedding) != len(query_embedding):
                mismatched += 1
            scored.append(
                ScoredChunk(chunk=chunk, score=cosine_similarity(query_embedding, chunk.embedding))
            )

        if mismatched:
            logger.warning(
                "embedding_dimension_mismatch",
                query_dimension=len(query_embedding),
                mismatched=mismatched,
            )

        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:top_k]
