# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Threaded wrapper for ReadingSession.

Recognition engines deliver events on whatever thread they like. This
module funnels every event and control command through a single queue
consumed by one worker thread, so the session's state is only ever touched
from that thread and the caller never blocks on alignment work.
"""

import logging
import queue
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .config import MatchingSettings, SessionSettings
from .errors import ReadalongError
from .events import Interim, RecognitionEvent
from .matcher import LIVE_THRESHOLD, SCORING_THRESHOLD
from .recognizer import EventListener, SpeechRecognizer
from .scorer import PageAssessment
from .session import DEFAULT_MAX_RESTARTS, ReadingSession, SessionUpdate

logger = logging.getLogger(__name__)


@dataclass
class EventRequest:
    """A recognition event waiting to be applied."""
    event: RecognitionEvent
    generation: int | None = None  # None when routed through a bound listener
    listener: EventListener | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_interim(self) -> bool:
        return isinstance(self.event, Interim)


@dataclass
class ControlCommand:
    """Control command for the worker thread."""
    command: str  # 'start', 'stop', 'sync', 'shutdown'
    reply: 'queue.Queue[Any] | None' = None


class _QueueingRecognizer(SpeechRecognizer):
    """Routes a recognizer's events through the worker queue."""

    def __init__(self, inner: SpeechRecognizer, owner: 'ThreadedSession') -> None:
        self.inner = inner
        self.owner = owner

    def is_supported(self) -> bool:
        return self.inner.is_supported()

    def start(self, listener: EventListener) -> None:
        def _enqueue(event: RecognitionEvent) -> None:
            self.owner.enqueue(EventRequest(event=event, listener=listener))
        self.inner.start(_enqueue)

    def stop(self) -> None:
        self.inner.stop()


class ThreadedSession:
    """
    Thread-safe, non-blocking front for a ReadingSession.

    Features:
    - Events are queued and applied in order by one worker thread
    - Optional throttling of interim events
    - Backpressure handling (drops old interims before finals when full)
    - Latest SessionUpdate cached for immediate access

    Usage:
        session = ThreadedSession(words, recognizer)
        generation = session.start()
        ...
        update = session.get_latest_update(timeout=0.1)
        assessment = session.stop()
        session.shutdown()
    """

    def __init__(
        self,
        reference_words: Sequence[str] | None,
        recognizer: SpeechRecognizer | None = None,
        live_threshold: float = LIVE_THRESHOLD,
        scoring_threshold: float = SCORING_THRESHOLD,
        max_restarts: int = DEFAULT_MAX_RESTARTS,
        interim_throttle_ms: int = 0,
        max_queue_size: int = 50,
        command_timeout: float = 5.0
    ):
        """
        Initialize the threaded session.

        Args:
            reference_words: The page's words in reading order
            recognizer: Speech engine, or None if the platform has none
            live_threshold: Fuzzy threshold for highlighting
            scoring_threshold: Fuzzy threshold for the final assessment
            max_restarts: Consecutive unexpected engine stops tolerated
            interim_throttle_ms: Minimum time between interim events (0 = off)
            max_queue_size: Maximum queue size before backpressure kicks in
            command_timeout: Seconds to wait for start/stop to complete
        """
        self.reference_words = list(reference_words or [])
        self.recognizer = recognizer
        self.live_threshold = live_threshold
        self.scoring_threshold = scoring_threshold
        self.max_restarts = max_restarts
        self.interim_throttle_ms = interim_throttle_ms
        self.max_queue_size = max_queue_size
        self.command_timeout = command_timeout

        # Queues for communication
        self.request_queue: queue.Queue[EventRequest | ControlCommand] = queue.Queue(
            maxsize=max_queue_size
        )
        self.update_queue: queue.Queue[SessionUpdate] = queue.Queue(maxsize=max_queue_size)

        # Thread control
        self.worker_thread: threading.Thread | None = None
        self.shutdown_flag = threading.Event()
        self.started = threading.Event()

        # Cached state (thread-safe with lock)
        self.state_lock = threading.Lock()
        self.latest_update: SessionUpdate | None = None
        self.last_interim_time = 0.0

        self._start_worker()

        self.started.wait(timeout=5.0)
        if not self.started.is_set():
            raise RuntimeError("Worker thread failed to start")

    @classmethod
    def from_settings(
        cls,
        reference_words: Sequence[str] | None,
        recognizer: SpeechRecognizer | None,
        matching: MatchingSettings,
        session: SessionSettings
    ) -> 'ThreadedSession':
        """Build a session from the matching/session sections of the config."""
        return cls(
            reference_words,
            recognizer,
            live_threshold=matching["live_threshold"],
            scoring_threshold=matching["scoring_threshold"],
            max_restarts=session["max_restarts"],
            interim_throttle_ms=session["interim_throttle_ms"],
            max_queue_size=session["max_queue_size"]
        )

    def _start_worker(self) -> None:
        """Start the worker thread."""
        self.worker_thread = threading.Thread(
            target=self._worker_loop,
            name="ReadingSessionWorker",
            daemon=True
        )
        self.worker_thread.start()

    def _worker_loop(self) -> None:
        """Main loop for the worker thread."""
        try:
            recognizer = (_QueueingRecognizer(self.recognizer, self)
                          if self.recognizer is not None else None)
            session = ReadingSession(
                self.reference_words,
                recognizer,
                live_threshold=self.live_threshold,
                scoring_threshold=self.scoring_threshold,
                max_restarts=self.max_restarts,
                on_update=self._publish
            )

            logger.info("ThreadedSession worker started")
            self.started.set()

            while not self.shutdown_flag.is_set():
                try:
                    item = self.request_queue.get(timeout=0.1)

                    if isinstance(item, ControlCommand):
                        self._handle_control_command(session, item)
                    elif isinstance(item, EventRequest):
                        self._handle_event_request(session, item)

                except queue.Empty:
                    continue
                except Exception as e:  # pylint: disable=broad-except
                    logger.error("Error in worker loop: %s", e, exc_info=True)

        finally:
            logger.info("ThreadedSession worker stopped")

    def _handle_control_command(self, session: ReadingSession, cmd: ControlCommand) -> None:
        """Handle control commands, replying with a result or the raised error."""
        result: Any = None
        if cmd.command == 'start':
            try:
                result = session.start()
            except ReadalongError as e:
                result = e
        elif cmd.command == 'stop':
            result = session.stop()
        elif cmd.command == 'shutdown':
            self.shutdown_flag.set()

        if cmd.reply is not None:
            cmd.reply.put(result)

    def _handle_event_request(self, session: ReadingSession, req: EventRequest) -> None:
        """Apply one queued recognition event."""
        if req.listener is not None:
            req.listener(req.event)
        elif req.generation is not None:
            session.handle(req.event, req.generation)

    def _publish(self, update: SessionUpdate) -> None:
        """Cache an update and queue it for consumers."""
        with self.state_lock:
            self.latest_update = update

        try:
            self.update_queue.put_nowait(update)
        except queue.Full:
            # Drop oldest update and try again
            try:
                self.update_queue.get_nowait()
                self.update_queue.put_nowait(update)
            except (queue.Empty, queue.Full):
                pass

    def _run_command(self, command: str) -> Any:
        reply: queue.Queue[Any] = queue.Queue(maxsize=1)
        self.request_queue.put(ControlCommand(command=command, reply=reply),
                               timeout=self.command_timeout)
        try:
            return reply.get(timeout=self.command_timeout)
        except queue.Empty as e:
            raise RuntimeError(f"Session worker did not answer '{command}'") from e

    def start(self) -> int:
        """
        Start reading (blocks until the worker has started the session).

        Returns:
            The generation of the new listening period

        Raises:
            UnsupportedEnvironmentError, PermissionDeniedError: As ReadingSession.start()
        """
        result = self._run_command('start')
        if isinstance(result, ReadalongError):
            raise result
        return result

    def stop(self) -> PageAssessment | None:
        """Stop reading (blocks until the worker has scored the attempt)."""
        return self._run_command('stop')

    def enqueue(self, request: EventRequest) -> bool:
        """
        Queue an event request (non-blocking).

        Returns:
            True if the request was queued, False if it was dropped
        """
        if request.is_interim and self.interim_throttle_ms > 0:
            now = time.time()
            if (now - self.last_interim_time) * 1000 < self.interim_throttle_ms:
                return False
            self.last_interim_time = now

        try:
            self.request_queue.put_nowait(request)
            return True
        except queue.Full:
            if not request.is_interim:
                # Finals carry transcript words; wait briefly rather than lose them
                try:
                    self.request_queue.put(request, timeout=0.5)
                    return True
                except queue.Full:
                    logger.warning("Backpressure: dropping %r (queue full)", request.event)
                    return False

            logger.warning("Backpressure: dropping interim %r", request.event)
            return False

    def submit(self, event: RecognitionEvent, generation: int) -> bool:
        """Queue an event for the given generation (non-blocking)."""
        return self.enqueue(EventRequest(event=event, generation=generation))

    def get_latest_update(self, timeout: float = 0) -> SessionUpdate | None:
        """
        Get the next session update.

        Args:
            timeout: How long to wait for an update (0 = don't wait)

        Returns:
            Next update or None if no update available
        """
        try:
            if timeout > 0:
                return self.update_queue.get(timeout=timeout)
            return self.update_queue.get_nowait()
        except queue.Empty:
            return None

    def get_cached_update(self) -> SessionUpdate | None:
        """Get the most recent update without consuming from the queue."""
        with self.state_lock:
            return self.latest_update

    def wait_idle(self, timeout: float = 1.0) -> bool:
        """Block until every request queued so far has been applied."""
        reply: queue.Queue[Any] = queue.Queue(maxsize=1)
        try:
            self.request_queue.put(ControlCommand(command='sync', reply=reply), timeout=timeout)
            reply.get(timeout=timeout)
            return True
        except (queue.Full, queue.Empty):
            return False

    def shutdown(self) -> None:
        """Shutdown the worker thread."""
        try:
            self.request_queue.put(ControlCommand(command='shutdown'), timeout=1.0)
        except queue.Full:
            pass

        self.shutdown_flag.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=2.0)

    def __del__(self) -> None:
        """Cleanup on deletion."""
        self.shutdown()

