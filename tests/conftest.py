"""
Shared fixtures: a scriptable stand-in for a speech recognition engine.
"""

import pytest

from readalong.errors import PermissionDeniedError
from readalong.events import RecognitionEvent
from readalong.recognizer import EventListener, SpeechRecognizer


class FakeRecognizer(SpeechRecognizer):
    """Recognizer driven by the test: emit() plays the engine's part."""

    def __init__(self, supported: bool = True, deny: bool = False) -> None:
        self.supported = supported
        self.deny = deny
        self.starts = 0
        self.stops = 0
        self.listener: EventListener | None = None

    def is_supported(self) -> bool:
        return self.supported

    def start(self, listener: EventListener) -> None:
        if self.deny:
            raise PermissionDeniedError("Microphone access was denied")
        self.starts += 1
        self.listener = listener

    def stop(self) -> None:
        self.stops += 1

    def emit(self, event: RecognitionEvent) -> None:
        assert self.listener is not None, "recognizer was never started"
        self.listener(event)


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def make_recognizer() -> type[FakeRecognizer]:
    return FakeRecognizer


@pytest.fixture
def pirates() -> list[str]:
    return ["Zip", "and", "Zap", "are", "space", "pirates."]
