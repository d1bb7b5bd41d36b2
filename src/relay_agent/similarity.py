"""Jaro-Winkler string similarity used to rank candidate names."""

from __future__ import annotations

from rapidfuzz.distance import JaroWinkler

TOLERANCE = 0.7


def score(a: str, b: str) -> float:
    """Return Jaro-Winkler similarity of `a` and `b` in [0, 1].

    Identical strings (including two empty strings) score 1.0. Comparison is
    case-sensitive; callers normalize before scoring.
    """

    if a == b:
        return 1.0
    return float(JaroWinkler.normalized_similarity(a, b))
