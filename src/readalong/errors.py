"""
Exceptions raised by reading sessions and story parsing.

Matching and scoring functions never raise; they report "no result" with
sentinel values. The classes here cover the conditions a caller has to act
on: the speech engine is missing, the microphone was refused, the engine
keeps dying, or a story document could not be understood.
"""


class ReadalongError(Exception):
    """Base class for all readalong errors."""

    kind: str = "error"


class UnsupportedEnvironmentError(ReadalongError):
    """No speech recognition engine is available on this platform."""

    kind = "unsupported"


class PermissionDeniedError(ReadalongError):
    """The user declined microphone / speech service access."""

    kind = "permission-denied"


class EngineInstabilityError(ReadalongError):
    """The speech engine terminated unexpectedly too many times in a row."""

    kind = "engine-instability"

    def __init__(self, terminations: int) -> None:
        super().__init__(
            f"Speech engine stopped unexpectedly {terminations} times in a row")
        self.terminations: int = terminations


class TransientRecognitionError(ReadalongError):
    """A recoverable engine hiccup (no speech heard, network blip, abort)."""

    kind = "transient"


class StoryFormatError(ReadalongError):
    """A story document could not be parsed."""

    kind = "story-format"
