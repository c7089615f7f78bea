# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Text normalization shared by live highlighting and page scoring.

Both the reference words of a page and the words heard by the speech
engine go through normalize() before they are compared, so that e.g.
"pirates." on the page matches a spoken "pirates".
"""

import re
from re import Pattern

# Characters removed from words before any comparison
STRIPPED_CHARACTERS: str = ".,!?;:\"'()[]{}*&^%$#@~`|\\/+-_=<>"

_STRIP_PATTERN: Pattern[str] = re.compile(f"[{re.escape(STRIPPED_CHARACTERS)}]")
_WHITESPACE_PATTERN: Pattern[str] = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Normalize text for matching.

    Lower-cases, removes punctuation/symbols, collapses whitespace runs to a
    single space and trims. Anything that is not a non-empty string
    normalizes to "".

    Examples:
        "Pirates." -> "pirates"
        "  Zip,   and Zap! " -> "zip and zap"
    """
    if not text or not isinstance(text, str):
        return ""
    stripped: str = _STRIP_PATTERN.sub("", text.lower())
    return _WHITESPACE_PATTERN.sub(" ", stripped).strip()


def split_words(text: str | None) -> list[str]:
    """Split raw text on whitespace, dropping empty pieces."""
    if not text or not isinstance(text, str):
        return []
    return [w for w in text.split() if w]


def normalized_words(text: str | None) -> list[str]:
    """Return the normalized words of a text, skipping ones that vanish."""
    words: list[str] = []
    for raw in split_words(text):
        word = normalize(raw)
        if word:
            words.append(word)
    return words


def last_word(text: str | None) -> str:
    """Return the last normalized word of a text, or "" if there is none."""
    words = normalized_words(text)
    return words[-1] if words else ""


def clean_transcript(text: str | None) -> str:
    """Trim a transcript fragment and collapse its whitespace (case kept)."""
    return " ".join(split_words(text))
