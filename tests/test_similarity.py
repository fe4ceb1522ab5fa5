import pytest

from logic.similarity import best_match, cosine_similarity


def test_cosine_similarity_basics():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0


def test_best_match_picks_highest_above_threshold():
    candidates = [("a", [0.6, 0.8]), ("b", [0.99, 0.1]), ("c", None), ("d", [1.0, 0.0])]
    winner, score = best_match([1.0, 0.0], candidates, 0.85)
    assert winner == "d"
    assert score == pytest.approx(1.0)


def test_best_match_threshold_is_strict_and_ties_keep_first():
    assert best_match([1.0, 0.0], [("a", [1.0, 0.0])], 1.0) is None
    winner, _ = best_match([1.0, 0.0], [("first", [2.0, 0.0]), ("second", [1.0, 0.0])], 0.5)
    assert winner == "first"
