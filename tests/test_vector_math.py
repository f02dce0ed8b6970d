"""Unit tests for cosine similarity."""

import math

import pytest

from agentrag.services.vector_math import cosine_similarities, cosine_similarity


def test_identical_vectors_score_one():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_orthogonal_vectors_score_zero():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_opposite_vectors_score_minus_one():
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_known_value():
    expected = 11 / (math.sqrt(5) * math.sqrt(25))
    assert cosine_similarity([1.0, 2.0], [3.0, 4.0]) == pytest.approx(expected)


def test_symmetric():
    a, b = [0.3, -1.2, 4.0], [2.0, 0.5, -0.7]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


@pytest.mark.parametrize(
    "a,b",
    [
        (None, [1.0]),
        ([1.0], None),
        ([], [1.0]),
        ([1.0, 2.0], [1.0]),
        ([0.0, 0.0], [1.0, 2.0]),
    ],
)
def test_degenerate_input_scores_zero(a, b):
    assert cosine_similarity(a, b) == 0.0


def test_batch_scores_match_pairwise():
    query = [1.0, 2.0]
    rows = [[3.0, 4.0], [1.0, 2.0], [-2.0, 1.0]]
    scores = cosine_similarities(query, rows)
    assert scores == pytest.approx([cosine_similarity(query, r) for r in rows])


def test_batch_scores_zero_for_bad_rows():
    scores = cosine_similarities([1.0, 0.0], [[0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0]])
    assert scores == pytest.approx([0.0, 0.0, 1.0])


def test_batch_scores_degenerate_query():
    assert cosine_similarities([], [[1.0]]) == [0.0]
    assert cosine_similarities([0.0, 0.0], [[1.0, 1.0], [2.0, 2.0]]) == [0.0, 0.0]
    assert cosine_similarities([1.0], []) == []
