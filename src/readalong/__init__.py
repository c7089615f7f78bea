"""
Readalong - reading practice with live word highlighting.

Follows a child reading a storybook page aloud: speech recognition results
are aligned with the page's words to highlight the current word, and the
attempt is scored word by word when reading stops.
"""

__version__ = "0.1.0"

from .errors import (
    EngineInstabilityError,
    PermissionDeniedError,
    ReadalongError,
    UnsupportedEnvironmentError,
)
from .events import EngineEnded, ErrorKind, Final, Interim, RecognitionError
from .matcher import LIVE_THRESHOLD, SCORING_THRESHOLD, find_best_match
from .scorer import PageAssessment, assess, fallback_assessment
from .session import ReadingSession, SessionState, SessionUpdate
from .similarity import edit_distance, similarity
from .story import Story, StoryPage, parse_story
from .text import normalize

__all__ = [
    "normalize",
    "edit_distance",
    "similarity",
    "find_best_match",
    "LIVE_THRESHOLD",
    "SCORING_THRESHOLD",
    "assess",
    "fallback_assessment",
    "PageAssessment",
    "ReadingSession",
    "SessionState",
    "SessionUpdate",
    "Interim",
    "Final",
    "RecognitionError",
    "EngineEnded",
    "ErrorKind",
    "Story",
    "StoryPage",
    "parse_story",
    "ReadalongError",
    "UnsupportedEnvironmentError",
    "PermissionDeniedError",
    "EngineInstabilityError",
]
