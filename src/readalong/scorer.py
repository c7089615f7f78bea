# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Local scoring of a page reading attempt.

assess() compares the expected words of a page against everything the
recognizer finalized while the child was reading. It is pure and needs no
network, so it doubles as a fallback for the LLM-based pronunciation
assessment (see fallback_assessment()).
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .matcher import SCORING_THRESHOLD
from .similarity import similarity
from .story import StoryPage
from .text import normalize, normalized_words, split_words


@dataclass
class WordResult:
    """Verdict for one reference word."""
    word: str  # Reference word as written on the page
    matched: bool
    similarity_score: float  # Best similarity to any spoken word (0-1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "matched": self.matched,
            "similarityScore": self.similarity_score,
        }


@dataclass
class PageAssessment:
    """Assessment record for one page reading attempt."""
    per_word_results: list[WordResult] = field(default_factory=list)
    accuracy_pct: int = 0

    @property
    def matched_count(self) -> int:
        return sum(1 for r in self.per_word_results if r.matched)

    def to_dict(self) -> dict[str, Any]:
        return {
            "perWordResults": [r.to_dict() for r in self.per_word_results],
            "accuracyPct": self.accuracy_pct,
        }


@dataclass
class PhonemeHit:
    phoneme: str
    hit: bool


@dataclass
class WordAnalysis:
    word: str
    phoneme_breakdown: list[PhonemeHit]
    correct: bool


@dataclass
class ReadingAssessment:
    """Same shape as the external pronunciation assessment."""
    sentence: str
    analysis: list[WordAnalysis]
    accuracy_pct: int
    fry_hit_pct: int
    phoneme_hit_pct: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sentence": self.sentence,
            "analysis": [
                {
                    "word": a.word,
                    "phonemeBreakdown": [
                        {"phoneme": p.phoneme, "hit": p.hit} for p in a.phoneme_breakdown
                    ],
                    "correct": a.correct,
                }
                for a in self.analysis
            ],
            "scores": {
                "accuracyPct": self.accuracy_pct,
                "fryHitPct": self.fry_hit_pct,
                "phonemeHitPct": self.phoneme_hit_pct,
            },
        }


def _as_words(text: str | Sequence[str] | None) -> list[str]:
    """Accept either a whole text or a pre-split word list."""
    if text is None:
        return []
    if isinstance(text, str):
        return split_words(text)
    words: list[str] = []
    for item in text:
        if isinstance(item, str):
            words.extend(split_words(item))
    return words


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round(100 * part / whole)


def _spoken_words(transcript: str | Sequence[str] | None) -> list[str]:
    spoken: list[str] = []
    for raw in _as_words(transcript):
        spoken.extend(normalized_words(raw))
    return spoken


def _score(
    reference: list[tuple[str, str]],
    spoken: list[str],
    threshold: float
) -> PageAssessment:
    """Score (raw, normalized) reference pairs against normalized spoken words."""
    if not reference:
        return PageAssessment()

    spoken_set: set[str] = set(spoken)
    results: list[WordResult] = []
    for raw, expected in reference:
        if expected in spoken_set:
            results.append(WordResult(raw, True, 1.0))
            continue

        best: float = 0.0
        for heard in spoken:
            score = similarity(expected, heard)
            if score > best:
                best = score
            if best == 1.0:
                break
        results.append(WordResult(raw, best >= threshold, best))

    matched = sum(1 for r in results if r.matched)
    return PageAssessment(per_word_results=results,
                          accuracy_pct=_percent(matched, len(results)))


def assess(
    reference_text: str | Sequence[str] | None,
    transcript: str | Sequence[str] | None,
    threshold: float = SCORING_THRESHOLD
) -> PageAssessment:
    """
    Score a reading attempt word by word.

    Each reference word is matched if the exact (normalized) word was spoken
    anywhere, or if its best similarity to any spoken word reaches the
    threshold. Word order is not considered.

    Args:
        reference_text: Expected page text, or its word list
        transcript: Accumulated final transcript, or its word list
        threshold: Minimum similarity for a fuzzy match

    Returns:
        PageAssessment. Empty reference gives no results; an empty transcript
        leaves every reference word unmatched.
    """
    reference: list[tuple[str, str]] = []
    for raw in _as_words(reference_text):
        norm = normalize(raw)
        if norm:
            reference.append((raw, norm))
    return _score(reference, _spoken_words(transcript), threshold)


def fallback_assessment(
    page: StoryPage,
    transcript: str | Sequence[str] | None,
    threshold: float = SCORING_THRESHOLD
) -> ReadingAssessment:
    """
    Build a pronunciation-style assessment without calling the LLM.

    Phonemes are only approximated at word level: every phoneme of a word
    that was read correctly counts as a hit, every phoneme of a missed word
    as a miss.
    """
    reference: list[tuple[str, str]] = []
    phonemes: list[list[str]] = []
    if page.words:
        for word in page.words:
            norm = normalize(word.text)
            if norm:
                reference.append((word.text, norm))
                phonemes.append(word.phonemes)
    else:
        for raw in page.reference_words():
            norm = normalize(raw)
            if norm:
                reference.append((raw, norm))
                phonemes.append([])

    result = _score(reference, _spoken_words(transcript), threshold)

    analysis: list[WordAnalysis] = []
    phoneme_total = 0
    phoneme_hits = 0
    for word_result, word_phonemes in zip(result.per_word_results, phonemes, strict=True):
        breakdown = [PhonemeHit(p, word_result.matched) for p in word_phonemes]
        phoneme_total += len(breakdown)
        if word_result.matched:
            phoneme_hits += len(breakdown)
        analysis.append(WordAnalysis(word_result.word, breakdown, word_result.matched))

    matched_words = {norm for (_, norm), r in zip(reference, result.per_word_results, strict=True)
                     if r.matched}
    fry = {normalize(w) for w in page.fry_words} - {""}
    fry_hits = len(fry & matched_words)

    return ReadingAssessment(
        sentence=" ".join(raw for raw, _ in reference),
        analysis=analysis,
        accuracy_pct=result.accuracy_pct,
        fry_hit_pct=_percent(fry_hits, len(fry)),
        phoneme_hit_pct=_percent(phoneme_hits, phoneme_total),
    )
