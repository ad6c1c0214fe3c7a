"""
Cosine Similarity Unit Tests

Pure-function tests for calculate_cosine_similarity and the per-row scorer.
"""

import math

import pytest

from hathi.core.exceptions import DimensionMismatchError, ErrorCode
from hathi.services.search import _score, calculate_cosine_similarity


class TestCosineSimilarity:
    """Tests for calculate_cosine_similarity."""

    def test_identical_vectors_score_one(self) -> None:
        v = [0.3, -1.2, 4.0]
        assert calculate_cosine_similarity(v, v) == pytest.approx(1.0)

    def test_orthogonal_vectors_score_zero(self) -> None:
        assert calculate_cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_opposite_vectors_score_minus_one(self) -> None:
        assert calculate_cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_symmetric(self) -> None:
        a, b = [1.0, 2.0, 3.0], [4.0, -5.0, 6.0]
        assert calculate_cosine_similarity(a, b) == calculate_cosine_similarity(b, a)

    def test_scale_invariant(self) -> None:
        a, b = [1.0, 2.0], [2.0, 1.0]
        scaled = [10 * x for x in a]
        assert calculate_cosine_similarity(scaled, b) == pytest.approx(
            calculate_cosine_similarity(a, b)
        )

    def test_zero_vector_scores_zero(self) -> None:
        """Zero magnitude returns 0 instead of dividing by zero."""
        assert calculate_cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
        assert calculate_cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0

    def test_result_stays_in_range(self) -> None:
        score = calculate_cosine_similarity([0.1, 0.7, -0.2], [0.9, -0.1, 0.4])
        assert -1.0 <= score <= 1.0
        assert not math.isnan(score)

    def test_dimension_mismatch_raises(self) -> None:
        with pytest.raises(DimensionMismatchError) as exc_info:
            calculate_cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH


class TestScore:
    """A bad stored vector scores 0 rather than raising."""

    def test_valid_embedding(self) -> None:
        assert _score([1.0, 0.0], "[1.0,0.0]", "n1") == pytest.approx(1.0)

    def test_malformed_json_scores_zero(self) -> None:
        assert _score([1.0, 0.0], "not json", "n1") == 0.0

    def test_wrong_length_scores_zero(self) -> None:
        assert _score([1.0, 0.0], "[1.0,0.0,0.0]", "n1") == 0.0

    def test_missing_scores_zero(self) -> None:
        assert _score([1.0, 0.0], None, "n1") == 0.0
