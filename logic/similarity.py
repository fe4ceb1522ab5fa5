"""Cosine similarity over stored item embeddings."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if not norm_a or not norm_b:
        return 0.0
    return dot_product / (norm_a * norm_b)


def best_match(
    query: Sequence[float],
    candidates: Iterable[Tuple[T, Optional[List[float]]]],
    threshold: float,
) -> Optional[Tuple[T, float]]:
    """Return the single highest-scoring candidate strictly above ``threshold``.

    Ties keep the first candidate seen.
    """

    winner: Optional[Tuple[T, float]] = None
    for candidate, embedding in candidates:
        if not embedding:
            continue
        score = cosine_similarity(query, embedding)
        if score > threshold and (winner is None or score > winner[1]):
            winner = (candidate, score)
    return winner


__all__ = ["best_match", "cosine_similarity"]
