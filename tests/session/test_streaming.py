"""
Tests for live highlighting as recognition events stream in.
"""

import pytest

from readalong.events import Final, Interim
from readalong.matcher import NO_MATCH
from readalong.session import ReadingSession, SessionState


@pytest.fixture
def session(pirates, recognizer) -> ReadingSession:
    s = ReadingSession(pirates, recognizer)
    s.start()
    return s


class TestHighlighting:

    def test_index_refers_to_callers_list(self, recognizer) -> None:
        words = [None, "", "zip", "zap"]
        session = ReadingSession(words, recognizer)  # type: ignore[arg-type]
        session.start()

        recognizer.emit(Interim("zip"))
        assert session.highlighted_index == 2
        assert words[session.highlighted_index] == "zip"

        recognizer.emit(Final("zip zap"))
        assert session.highlighted_index == 3
        assert session.stop().accuracy_pct == 100

    def test_nothing_highlighted_before_speech(self, session: ReadingSession) -> None:
        assert session.state is SessionState.LISTENING
        assert session.highlighted_index == NO_MATCH

    def test_follows_reading(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Interim("Zip"))
        assert session.highlighted_index == 0

        recognizer.emit(Interim("Zip and"))
        assert session.highlighted_index == 1

        recognizer.emit(Final("Zip and"))
        assert session.highlighted_index == 1
        assert session.alignment.interim == ""

        recognizer.emit(Interim("Zap"))
        assert session.highlighted_index == 2

        recognizer.emit(Final("Zap"))
        assert session.highlighted_index == 2
        assert session.transcript == "Zip and Zap"

    def test_interims_then_trailing_final(self, session: ReadingSession, recognizer) -> None:
        seen = []
        for event in (Interim("zip"), Interim("zip and"), Final("zip and zap ")):
            recognizer.emit(event)
            seen.append(session.highlighted_index)

        assert seen == [0, 1, 2]
        assert session.transcript == "zip and zap"
        assert session.alignment.interim == ""

    def test_never_moves_backwards(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Interim("zip and zap are"))
        assert session.highlighted_index == 3

        recognizer.emit(Interim("zip"))
        assert session.highlighted_index == 3

    def test_unmatched_word_keeps_highlight(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Interim("zip"))
        recognizer.emit(Interim("zip elephant"))
        assert session.highlighted_index == 0
        assert session.alignment.last_detected_word == "elephant"

    def test_fuzzy_word_moves_highlight(self, session: ReadingSession, recognizer) -> None:
        # "pirate" is a substring of "pirates"
        recognizer.emit(Interim("pirate"))
        assert session.highlighted_index == 5

    def test_final_uses_last_confirmed_word(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Final("zip and zap"))
        assert session.highlighted_index == 2
        assert session.alignment.last_detected_word == ""


class TestTranscript:

    def test_finals_accumulate(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Final("  Zip   and "))
        recognizer.emit(Final("Zap"))
        assert session.transcript == "Zip and Zap"
        assert session.alignment.transcript == ["Zip", "and", "Zap"]

    def test_interims_are_not_transcribed(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Interim("zip and zap"))
        assert session.transcript == ""
        assert session.alignment.interim == "zip and zap"

    def test_empty_final_is_ignored(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Final("   "))
        assert session.transcript == ""

    def test_confidence_is_tracked(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Interim("zip", confidence=0.4))
        assert session.alignment.confidence == 0.4

        recognizer.emit(Final("zip", confidence=0.9))
        assert session.alignment.confidence == 0.9

        # Events without a confidence keep the last known value
        recognizer.emit(Interim("zip and"))
        assert session.alignment.confidence == 0.9


class TestDetectionWord:

    def test_prefers_last_interim_word(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Final("zip"))
        recognizer.emit(Interim("and zap"))
        assert session.detection_word() == "zap"

    def test_falls_back_to_transcript(self, session: ReadingSession, recognizer) -> None:
        recognizer.emit(Final("zip and"))
        assert session.detection_word() == "and"

    def test_empty_when_nothing_heard(self, session: ReadingSession) -> None:
        assert session.detection_word() == ""
