"""
Edit-distance based similarity between two words.
"""

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str | None, b: str | None) -> int:
    """Classic Levenshtein distance (insert, delete, substitute all cost 1)."""
    return Levenshtein.distance(a or "", b or "")


def similarity(a: str | None, b: str | None) -> float:
    """
    Similarity in [0, 1] derived from the edit distance.

    Computed as 1 - distance / max(len(a), len(b)). Two empty strings are
    identical (1.0); exactly one empty string has nothing in common with
    the other (0.0).

    Callers are expected to pass normalized words (see text.normalize).
    """
    a = a or ""
    b = b or ""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - edit_distance(a, b) / max(len(a), len(b))
