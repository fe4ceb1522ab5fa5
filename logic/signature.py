"""Distance between perceptual signatures."""

from __future__ import annotations

from logic.errors import LengthMismatchError


def signature_distance(a: str, b: str) -> int:
    """Count the positions at which two signatures differ (Hamming distance)."""

    if len(a) != len(b):
        raise LengthMismatchError(
            f"Signatures must be of equal length (got {len(a)} and {len(b)})"
        )
    return sum(1 for left, right in zip(a, b) if left != right)


__all__ = ["signature_distance"]
