# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Typed view of the storybook document produced by the story generator.

The generator returns JSON shaped like::

    {"title": ..., "readingLevel": ..., "pages": [
        {"pageNumber": 1, "words": [{"text": "Zip", "phonemes": ["Z", "IH1", "P"]}],
         "imagePrompt": ...}
    ]}

Only the parts the reader needs are modelled. The reference words of a page
are the word texts in order.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from re import Pattern
from typing import Any

from .errors import StoryFormatError
from .text import split_words

logger = logging.getLogger(__name__)

# Fenced ```json blocks first, then any bare fenced block, then the outermost braces
_JSON_PATTERNS: list[Pattern[str]] = [
    re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL),
    re.compile(r"```\s*\n(.*?)\n\s*```", re.DOTALL),
    re.compile(r"\{.*\}", re.DOTALL),
]


@dataclass
class StoryWord:
    """A word on a page with its ARPABET phonemes (supplied by the generator)."""
    text: str
    phonemes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> 'StoryWord | None':
        """Build a word from a dict, or None if the entry is unusable."""
        if not isinstance(data, dict):
            return None
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            return None
        phonemes = data.get("phonemes") or []
        if not isinstance(phonemes, list):
            phonemes = []
        return cls(text=text, phonemes=[str(p) for p in phonemes])


@dataclass
class StoryPage:
    """One page of a storybook."""
    page_number: int
    words: list[StoryWord] = field(default_factory=list)
    image_prompt: str = ""
    image_url: str | None = None
    fry_words: list[str] = field(default_factory=list)  # Focus sight words
    text: str = ""  # Plain text, used when no word objects are present

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'StoryPage':
        """Build a page from generator / API JSON (camelCase keys)."""
        if not isinstance(data, dict):
            raise StoryFormatError(f"Page must be an object, got {type(data).__name__}")

        words: list[StoryWord] = []
        for entry in data.get("words") or []:
            word = StoryWord.from_dict(entry)
            if word is not None:
                words.append(word)

        try:
            page_number = int(data.get("pageNumber", 0) or 0)
        except (TypeError, ValueError) as e:
            raise StoryFormatError(f"Invalid page number: {data.get('pageNumber')!r}") from e

        fry_words = data.get("fryWords") or []
        return cls(
            page_number=page_number,
            words=words,
            image_prompt=str(data.get("imagePrompt") or ""),
            image_url=data.get("imageUrl") or None,
            fry_words=[str(w) for w in fry_words] if isinstance(fry_words, list) else [],
            text=str(data.get("text") or ""),
        )

    def reference_words(self) -> list[str]:
        """Expected words for this page, in reading order."""
        if self.words:
            return [w.text for w in self.words if w.text.strip()]
        return split_words(self.text)

    def sentence(self) -> str:
        """The page text as a single line."""
        return " ".join(self.reference_words())


@dataclass
class Story:
    """A generated storybook."""
    title: str
    reading_level: str
    pages: list[StoryPage] = field(default_factory=list)
    theme: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Story':
        """Build a story from generator JSON."""
        if not isinstance(data, dict):
            raise StoryFormatError("Story document must be a JSON object")
        pages_data = data.get("pages")
        if not isinstance(pages_data, list):
            raise StoryFormatError("Story document has no pages list")

        pages = [StoryPage.from_dict(p) for p in pages_data]
        pages.sort(key=lambda p: p.page_number)
        return cls(
            title=str(data.get("title") or ""),
            reading_level=str(data.get("readingLevel") or ""),
            pages=pages,
            theme=str(data.get("theme") or ""),
        )

    def page(self, page_number: int) -> StoryPage | None:
        """Look up a page by its 1-based page number."""
        for page in self.pages:
            if page.page_number == page_number:
                return page
        return None


def extract_json(response_text: str) -> str:
    """Pull the JSON document out of an LLM reply that may wrap it in markdown."""
    for pattern in _JSON_PATTERNS:
        match = pattern.search(response_text)
        if match:
            return match.group(1) if match.groups() else match.group(0)
    return response_text


def parse_story(response_text: str) -> Story:
    """
    Parse the story generator's reply into a Story.

    Raises:
        StoryFormatError: If no valid story JSON can be found
    """
    json_text = extract_json(response_text or "")
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse storybook JSON: %s", e)
        raise StoryFormatError("Failed to parse storybook JSON response") from e
    return Story.from_dict(data)
