"""
Events delivered by a speech recognition engine.

A recognizer reports one of four things: an interim hypothesis that may
still change, a final hypothesis, an error code, or that it stopped on its
own. Each is its own dataclass so handlers can dispatch on type instead of
poking at optional fields.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error codes reported by the speech engine."""
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    NO_SPEECH = "no-speech"
    NETWORK = "network"
    ABORTED = "aborted"

    @property
    def is_permission_error(self) -> bool:
        return self in (ErrorKind.NOT_ALLOWED, ErrorKind.SERVICE_NOT_ALLOWED)


@dataclass(frozen=True)
class Interim:
    """Provisional hypothesis, cumulative within the current utterance."""
    text: str
    confidence: float | None = None

    def __repr__(self) -> str:
        return f"Interim('{self.text}')"


@dataclass(frozen=True)
class Final:
    """Hypothesis the engine will not revise further."""
    text: str
    confidence: float | None = None

    def __repr__(self) -> str:
        return f"Final('{self.text}')"


@dataclass(frozen=True)
class RecognitionError:
    """An error reported by the engine."""
    kind: ErrorKind


@dataclass(frozen=True)
class EngineEnded:
    """The engine stopped without being asked to."""


RecognitionEvent = Interim | Final | RecognitionError | EngineEnded


def _confidence(value: Any) -> float | None:
    if value is None:
        return None
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return None
    return min(max(confidence, 0.0), 1.0)


def event_from_dict(data: dict[str, Any]) -> RecognitionEvent:
    """
    Build an event from a client message.

    Expected shape: {"kind": "interim" | "final" | "error" | "end",
    "text": str, "confidence": float, "error": str}

    Raises:
        ValueError: For unknown kinds or error codes
    """
    kind = data.get("kind")
    if kind in ("interim", "final"):
        text = data.get("text")
        text = text if isinstance(text, str) else ""
        confidence = _confidence(data.get("confidence"))
        if kind == "interim":
            return Interim(text, confidence)
        return Final(text, confidence)
    if kind == "error":
        return RecognitionError(ErrorKind(data.get("error")))
    if kind == "end":
        return EngineEnded()
    raise ValueError(f"Unknown recognition event kind: {kind!r}")
