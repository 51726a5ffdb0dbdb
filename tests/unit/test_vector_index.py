"""Unit tests for cosine similarity and top-K ranking."""

from __future__ import annotations

import math

import pytest

from src.models.knowledge import ChunkMetadata, DataSourceType, DocumentChunk
from src.services.search.vector_index import DEFAULT_TOP_K, VectorIndex, cosine_similarity


def _chunk(content: str, embedding: list[float]) -> DocumentChunk:
    return DocumentChunk(
        tenant_id="t1",
        source_id="s1",
        title=content,
        content=content,
        embedding=embedding,
        metadata=ChunkMetadata(source_type=DataSourceType.DOCUMENT),
    )


class TestCosineSimilarity:
    def test_identical_vectors_score_one(self) -> None:
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors_score_zero(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors_score_minus_one(self) -> None:
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self) -> None:
        assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)

    def test_known_angle(self) -> None:
        assert cosine_similarity([1.0, 0.0], [1.0, 1.0]) == pytest.approx(1 / math.sqrt(2))

    @pytest.mark.parametrize(
        ("a", "b"),
        [([0.0, 0.0], [1.0, 2.0]), ([], []), ([1.0], []), ([1.0, 2.0], [1.0, 2.0, 3.0])],
    )
    def test_degenerate_inputs_score_zero(self, a: list[float], b: list[float]) -> None:
        assert cosine_similarity(a, b) == 0.0

    def test_result_clamped_to_unit_range(self) -> None:
        vec = [0.1] * 1000
        score = cosine_similarity(vec, vec)
        assert -1.0 <= score <= 1.0


class TestVectorIndexRank:
    def test_returns_best_first(self) -> None:
        candidates = [
            _chunk("far", [0.0, 1.0]),
            _chunk("near", [1.0, 0.1]),
            _chunk("middle", [1.0, 1.0]),
        ]
        results = VectorIndex().rank([1.0, 0.0], candidates, top_k=3)

        assert [r.chunk.content for r in results] == ["near", "middle", "far"]
        assert results[0].score > results[1].score > results[2].score

    def test_top_k_limits_results(self) -> None:
        candidates = [_chunk(str(i), [1.0, float(i)]) for i in range(10)]
        results = VectorIndex().rank([1.0, 0.0], candidates, top_k=3)

        assert len(results) == 3
        assert [r.chunk.content for r in results] == ["0", "1", "2"]

    def test_default_top_k(self) -> None:
        candidates = [_chunk(str(i), [1.0, float(i)]) for i in range(10)]
        assert len(VectorIndex().rank([1.0, 0.0], candidates)) == DEFAULT_TOP_K == 5

    def test_ties_keep_insertion_order(self) -> None:
        candidates = [_chunk(name, [2.0, 2.0]) for name in ("first", "second", "third")]
        results = VectorIndex().rank([1.0, 1.0], candidates, top_k=3)

        assert [r.chunk.content for r in results] == ["first", "second", "third"]

    def test_chunks_without_embedding_skipped(self) -> None:
        candidates = [_chunk("empty", []), _chunk("real", [1.0, 0.0])]
        results = VectorIndex().rank([1.0, 0.0], candidates)

        assert [r.chunk.content for r in results] == ["real"]

    def test_dimension_mismatch_scores_zero(self) -> None:
        candidates = [_chunk("wrong", [1.0, 0.0, 0.0]), _chunk("right", [1.0, 0.0])]
        results = VectorIndex().rank([1.0, 0.0], candidates)

        assert results[0].chunk.content == "right"
        assert results[1].score == 0.0

    @pytest.mark.parametrize("top_k", [0, -1])
    def test_non_positive_top_k_returns_nothing(self, top_k: int) -> None:
        assert VectorIndex().rank([1.0], [_chunk("a", [1.0])], top_k=top_k) == []

    def test_empty_query_returns_nothing(self) -> None:
        assert VectorIndex().rank([], [_chunk("a", [1.0])]) == []

    def test_ranking_is_deterministic_and_pure(self) -> None:
        candidates = [_chunk(str(i), [float(i % 3), 1.0]) for i in range(6)]
        before = [c.model_copy() for c in candidates]
        index = VectorIndex()

        first = index.rank([1.0, 0.5], candidates, top_k=4)
        second = index.rank([1.0, 0.5], candidates, top_k=4)

        assert [r.chunk.id for r in first] == [r.chunk.id for r in second]
        assert candidates == before
