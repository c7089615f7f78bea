"""
Interface to a speech recognition engine.

The engine itself lives outside this package (typically the browser's
speech API). A ReadingSession only needs to know whether one is available,
how to start it with a listener, and how to stop it.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from .errors import PermissionDeniedError
from .events import RecognitionEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[RecognitionEvent], None]
CommandSender = Callable[[dict[str, object]], None]


class SpeechRecognizer(ABC):
    """Base interface for speech recognition engines."""

    @abstractmethod
    def is_supported(self) -> bool:
        """Whether an engine is available on this platform."""

    @abstractmethod
    def start(self, listener: EventListener) -> None:
        """
        Start (or restart) recognition, delivering events to listener.

        Raises:
            PermissionDeniedError: If microphone access was refused
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop recognition. Events may still trickle in afterwards."""


class BrowserRecognizer(SpeechRecognizer):
    """
    Recognizer hosted by a browser client over a WebSocket.

    The client reports whether it has a speech engine and whether the user
    granted microphone access. start/stop are forwarded to it as command
    messages; events it sends back are passed to deliver().
    """

    def __init__(self, send: CommandSender, supported: bool = False,
                 permission_granted: bool = True) -> None:
        self._send: CommandSender = send
        self.supported: bool = supported
        self.permission_granted: bool = permission_granted
        self._listener: EventListener | None = None

    def is_supported(self) -> bool:
        return self.supported

    def start(self, listener: EventListener) -> None:
        if not self.permission_granted:
            raise PermissionDeniedError("Microphone access was denied")
        self._listener = listener
        self._send({"type": "recognizer", "command": "start"})

    def stop(self) -> None:
        self._send({"type": "recognizer", "command": "stop"})

    def deliver(self, event: RecognitionEvent) -> None:
        """Pass an event from the client to the current listener."""
        if self._listener is None:
            logger.debug("Dropping %r: recognizer was never started", event)
            return
        self._listener(event)
