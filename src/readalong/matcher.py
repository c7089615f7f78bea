# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Locates a spoken word within the reference words of a page.

Matching runs in three tiers and the first tier with any hit wins:
exact, then substring, then fuzzy (edit-distance similarity above a
threshold). Live highlighting uses a looser threshold than scoring so
that the highlight keeps up with a child's reading even when the
recognizer mangles a word.
"""

import logging
from collections.abc import Sequence

from .similarity import similarity
from .text import normalize

logger = logging.getLogger(__name__)

# Fuzzy threshold for live highlighting (responsiveness over precision)
LIVE_THRESHOLD: float = 0.7
# Fuzzy threshold for post-reading scoring (precision over recall)
SCORING_THRESHOLD: float = 0.8

NO_MATCH: int = -1


def _normalized_reference(reference_words: Sequence[str] | None) -> list[tuple[int, str]]:
    """Pair each usable reference word with its original index."""
    if not reference_words:
        return []
    pairs: list[tuple[int, str]] = []
    for i, word in enumerate(reference_words):
        norm = normalize(word) if isinstance(word, str) else ""
        if norm:
            pairs.append((i, norm))
    return pairs


def find_best_match(
    reference_words: Sequence[str] | None,
    spoken_word: str | None,
    threshold: float = LIVE_THRESHOLD
) -> int:
    """
    Find the index of the reference word that best matches a spoken word.

    Args:
        reference_words: The page's words, in reading order (raw form)
        spoken_word: A single word heard by the recognizer (raw form)
        threshold: Similarity a fuzzy match must exceed to be accepted

    Returns:
        Index into reference_words, or NO_MATCH (-1). Exact and substring
        matches return the first qualifying index; fuzzy matches return the
        highest-scoring index (earliest on ties). Never raises.
    """
    spoken: str = normalize(spoken_word)
    if not spoken:
        return NO_MATCH

    candidates = _normalized_reference(reference_words)
    if not candidates:
        return NO_MATCH

    for i, target in candidates:
        if target == spoken:
            logger.debug("Exact match for '%s' at %d", spoken, i)
            return i

    for i, target in candidates:
        if spoken in target or target in spoken:
            logger.debug("Substring match for '%s' at %d", spoken, i)
            return i

    best_index: int = NO_MATCH
    best_score: float = threshold
    for i, target in candidates:
        score = similarity(target, spoken)
        if score > best_score:
            best_score = score
            best_index = i

    if best_index != NO_MATCH:
        logger.debug("Fuzzy match for '%s' at %d (similarity %.2f)",
                     spoken, best_index, best_score)
    else:
        logger.debug("No match for '%s'", spoken)
    return best_index
