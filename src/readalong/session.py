# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Reading session: follows a child reading one page aloud.

Consumes recognition events (interim, final, error, engine-ended) and keeps
a forward-only highlighted word index for the UI. Final results accumulate
into a transcript that is scored against the page when reading stops.

States:
    IDLE      -> LISTENING  start()
    LISTENING -> LISTENING  each recognition event
    LISTENING -> STOPPED    stop(), permission revoked, or the engine dying
                            max_restarts times in a row
    STOPPED   -> LISTENING  start() again

Every start() and every transition to STOPPED bumps a generation counter.
Listeners handed to the recognizer are bound to the generation they were
created for, so events that straggle in after a stop are discarded.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from . import debug_log
from .errors import (
    EngineInstabilityError,
    PermissionDeniedError,
    ReadalongError,
    TransientRecognitionError,
    UnsupportedEnvironmentError,
)
from .events import EngineEnded, Final, Interim, RecognitionError, RecognitionEvent
from .matcher import LIVE_THRESHOLD, NO_MATCH, SCORING_THRESHOLD, find_best_match
from .recognizer import EventListener, SpeechRecognizer
from .scorer import PageAssessment, assess
from .text import clean_transcript, last_word, split_words

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESTARTS: int = 3


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    STOPPED = "stopped"


@dataclass
class AlignmentState:
    """Mutable per-session view of what has been heard so far."""
    transcript: list[str] = field(default_factory=list)  # Confirmed (final) words
    interim: str = ""  # Current interim fragment, replaced on every interim event
    last_detected_word: str = ""  # Last word of the most recent interim event
    highlighted_index: int = NO_MATCH
    confidence: float | None = None

    @property
    def transcript_text(self) -> str:
        return " ".join(self.transcript)

    def reset(self) -> None:
        self.transcript.clear()
        self.interim = ""
        self.last_detected_word = ""
        self.highlighted_index = NO_MATCH
        self.confidence = None


@dataclass(frozen=True)
class SessionUpdate:
    """Snapshot of a session, sent to observers after every change."""
    state: SessionState
    highlighted_index: int
    last_detected_word: str
    interim: str
    transcript: str
    confidence: float | None
    generation: int
    error: ReadalongError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "highlightedIndex": self.highlighted_index,
            "lastDetectedWord": self.last_detected_word,
            "interim": self.interim,
            "transcript": self.transcript,
            "confidence": self.confidence,
            "generation": self.generation,
            "error": None if self.error is None else {
                "kind": self.error.kind,
                "message": str(self.error),
            },
        }


class ReadingSession:
    """
    Aligns a stream of recognition events with the words of one page.

    Usage:
        session = ReadingSession(page.reference_words(), recognizer)
        session.start()           # recognizer now feeds session.handle()
        ...
        assessment = session.stop()
    """

    reference_words: tuple[str, ...]
    recognizer: SpeechRecognizer | None
    live_threshold: float
    scoring_threshold: float
    max_restarts: int

    state: SessionState
    generation: int
    alignment: AlignmentState
    error: ReadalongError | None
    last_transient_error: TransientRecognitionError | None
    assessment: PageAssessment | None
    consecutive_terminations: int

    def __init__(
        self,
        reference_words: Sequence[str] | None,
        recognizer: SpeechRecognizer | None = None,
        live_threshold: float = LIVE_THRESHOLD,
        scoring_threshold: float = SCORING_THRESHOLD,
        max_restarts: int = DEFAULT_MAX_RESTARTS,
        on_update: Callable[[SessionUpdate], None] | None = None
    ) -> None:
        """
        Initialize the session.

        Args:
            reference_words: The page's words in reading order
            recognizer: Speech engine, or None if the platform has none
            live_threshold: Fuzzy threshold for highlighting
            scoring_threshold: Fuzzy threshold for the final assessment
            max_restarts: Consecutive unexpected engine stops tolerated;
                reaching this count stops the session
            on_update: Called with a SessionUpdate after every change
        """
        # Kept as given so highlight indices line up with the caller's list
        self.reference_words = tuple(reference_words or [])
        self.recognizer = recognizer
        self.live_threshold = live_threshold
        self.scoring_threshold = scoring_threshold
        self.max_restarts = max(1, max_restarts)
        self.on_update = on_update

        self.state = SessionState.IDLE
        self.generation = 0
        self.alignment = AlignmentState()
        self.error = None
        self.last_transient_error = None
        self.assessment = None
        self.consecutive_terminations = 0

        # Reentrant: a recognizer may deliver events synchronously from start()
        self._lock: threading.RLock = threading.RLock()

    @property
    def highlighted_index(self) -> int:
        return self.alignment.highlighted_index

    @property
    def transcript(self) -> str:
        return self.alignment.transcript_text

    @property
    def is_listening(self) -> bool:
        return self.state is SessionState.LISTENING

    def snapshot(self) -> SessionUpdate:
        with self._lock:
            return SessionUpdate(
                state=self.state,
                highlighted_index=self.alignment.highlighted_index,
                last_detected_word=self.alignment.last_detected_word,
                interim=self.alignment.interim,
                transcript=self.alignment.transcript_text,
                confidence=self.alignment.confidence,
                generation=self.generation,
                error=self.error,
            )

    def listener(self, generation: int) -> EventListener:
        """Event callback bound to one generation of this session."""
        def _listen(event: RecognitionEvent) -> None:
            self.handle(event, generation)
        return _listen

    def start(self) -> int:
        """
        Start reading: clear all state and begin listening.

        Returns:
            The generation number of the new listening period

        Raises:
            UnsupportedEnvironmentError: No speech engine is available
            PermissionDeniedError: The engine refused to start
        """
        with self._lock:
            if self.recognizer is None or not self.recognizer.is_supported():
                logger.warning("Speech recognition is not supported")
                raise UnsupportedEnvironmentError(
                    "Speech recognition is not supported on this platform")

            if self.state is SessionState.LISTENING:
                logger.info("Restarting session that was still listening")
                self._halt_recognizer()

            self.generation += 1
            self.alignment.reset()
            self.error = None
            self.last_transient_error = None
            self.assessment = None
            self.consecutive_terminations = 0

            try:
                self.recognizer.start(self.listener(self.generation))
            except PermissionDeniedError as e:
                logger.warning("Cannot start listening: %s", e)
                self.error = e
                self.state = SessionState.IDLE
                self._notify()
                raise

            self.state = SessionState.LISTENING
            logger.info("Listening (generation %d, %d reference words)",
                        self.generation, len(self.reference_words))
            self._notify()
            return self.generation

    def stop(self) -> PageAssessment | None:
        """
        Stop reading and score what was heard.

        Returns:
            The assessment of this attempt, or the previous one if the
            session was not listening
        """
        with self._lock:
            if self.state is not SessionState.LISTENING:
                return self.assessment
            self._enter_stopped()
            self._halt_recognizer()
            self._notify()
            return self.assessment

    def handle(self, event: RecognitionEvent, generation: int) -> bool:
        """
        Apply a recognition event.

        Args:
            event: The event from the recognizer
            generation: Generation the event's listener was bound to

        Returns:
            True if the event was applied, False if it was discarded
        """
        with self._lock:
            if generation != self.generation or self.state is not SessionState.LISTENING:
                logger.debug("Discarding stale %r (generation %d, current %d, %s)",
                             event, generation, self.generation, self.state.value)
                return False

            if isinstance(event, Interim):
                self._on_interim(event)
            elif isinstance(event, Final):
                self._on_final(event)
            elif isinstance(event, RecognitionError):
                self._on_error(event)
            elif isinstance(event, EngineEnded):
                self._on_engine_ended()
            else:
                logger.warning("Unhandled recognition event: %r", event)
                return False

            self._notify()
            return True

    def _on_interim(self, event: Interim) -> None:
        self.consecutive_terminations = 0
        self.alignment.interim = event.text or ""
        self.alignment.last_detected_word = last_word(self.alignment.interim)
        if event.confidence is not None:
            self.alignment.confidence = event.confidence
        self._update_highlight("interim")

    def _on_final(self, event: Final) -> None:
        self.consecutive_terminations = 0
        text = clean_transcript(event.text)
        if text:
            self.alignment.transcript.extend(split_words(text))
            debug_log.log_transcript(self.alignment.transcript_text, text)
        self.alignment.interim = ""
        self.alignment.last_detected_word = ""
        if event.confidence is not None:
            self.alignment.confidence = event.confidence
        self._update_highlight("final")

    def _on_error(self, event: RecognitionError) -> None:
        if event.kind.is_permission_error:
            logger.warning("Speech recognition permission revoked (%s)", event.kind.value)
            self._enter_stopped(PermissionDeniedError(
                f"Speech recognition not allowed ({event.kind.value})"))
            self._halt_recognizer()
            return
        self.last_transient_error = TransientRecognitionError(
            f"Speech engine reported {event.kind.value}, still listening")
        logger.info("%s", self.last_transient_error)

    def _on_engine_ended(self) -> None:
        self.consecutive_terminations += 1
        if self.consecutive_terminations >= self.max_restarts:
            logger.error("Speech engine ended unexpectedly %d times, giving up",
                         self.consecutive_terminations)
            self._enter_stopped(EngineInstabilityError(self.consecutive_terminations))
            return

        logger.info("Speech engine ended unexpectedly, restarting (%d/%d)",
                    self.consecutive_terminations, self.max_restarts)
        assert self.recognizer is not None
        try:
            self.recognizer.start(self.listener(self.generation))
        except PermissionDeniedError as e:
            self._enter_stopped(e)
        except (RuntimeError, OSError) as e:
            logger.error("Restarting speech engine failed: %s", e)
            self._enter_stopped(EngineInstabilityError(self.consecutive_terminations))

    def detection_word(self) -> str:
        """The word highlighting should be based on, or "" if nothing was heard.

        Most recent interim word first, then the interim fragment, then the
        last confirmed word.
        """
        if self.alignment.last_detected_word:
            return self.alignment.last_detected_word
        interim_word = last_word(self.alignment.interim)
        if interim_word:
            return interim_word
        return last_word(self.alignment.transcript_text)

    def _update_highlight(self, reason: str) -> None:
        word = self.detection_word()
        if not word:
            return
        index = find_best_match(self.reference_words, word, self.live_threshold)
        if index == NO_MATCH:
            return
        old_index = self.alignment.highlighted_index
        if index < old_index:
            # Never move the highlight backwards on a noisy hypothesis
            return
        if index != old_index:
            self.alignment.highlighted_index = index
            debug_log.log_highlight(old_index, index, self.reference_words[index], word, reason)

    def _enter_stopped(self, error: ReadalongError | None = None) -> None:
        """Move to STOPPED, keeping the final transcript for scoring."""
        self.state = SessionState.STOPPED
        self.generation += 1
        self.alignment.interim = ""
        self.alignment.last_detected_word = ""
        self.alignment.highlighted_index = NO_MATCH
        if error is not None:
            self.error = error
        self.assessment = assess(
            self.reference_words, self.alignment.transcript, self.scoring_threshold)
        logger.info("Stopped reading: %d/%d words matched (%d%%)",
                    self.assessment.matched_count,
                    len(self.assessment.per_word_results),
                    self.assessment.accuracy_pct)

    def _halt_recognizer(self) -> None:
        if self.recognizer is None:
            return
        try:
            self.recognizer.stop()
        except (RuntimeError, OSError) as e:
            logger.warning("Error stopping speech engine: %s", e)

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self.snapshot())
