# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server for the read-along interface.

The browser owns the speech engine. It pushes recognition events over a
WebSocket; the server runs a ReadingSession per connection and answers with
highlight updates, recognizer commands and, when reading stops, the
assessment. Stateless scoring is also offered over plain HTTP.
"""

import contextlib
import json
import logging
from typing import Any

from aiohttp import web

from .config import DEFAULT_CONFIG, MatchingSettings, SessionSettings
from .errors import ReadalongError, StoryFormatError
from .events import RecognitionError, event_from_dict
from .recognizer import BrowserRecognizer
from .scorer import assess, fallback_assessment
from .session import ReadingSession, SessionState, SessionUpdate
from .story import StoryPage

logger = logging.getLogger(__name__)


class ClientConnection:
    """Per-WebSocket state: the client's recognizer, page and session."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self.ws: web.WebSocketResponse = ws
        self.outbox: list[dict[str, object]] = []
        self.recognizer: BrowserRecognizer = BrowserRecognizer(self.outbox.append)
        self.page: StoryPage | None = None
        self.session: ReadingSession | None = None

    def queue_update(self, update: SessionUpdate) -> None:
        self.outbox.append({"type": "update", **update.to_dict()})

    async def flush(self) -> None:
        """Send everything queued while handling the last message."""
        while self.outbox:
            message = self.outbox.pop(0)
            await self.ws.send_json(message)


def _error_message(kind: str, message: str) -> dict[str, object]:
    return {"type": "error", "kind": kind, "message": message}


class WebServer:
    """
    Serves the read-along API and manages WebSocket connections.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        matching_settings: MatchingSettings | None = None,
        session_settings: SessionSettings | None = None
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.app: web.Application = web.Application()
        self.connections: set[ClientConnection] = set()
        self.runner: web.AppRunner | None = None

        # Merge settings with defaults
        self.matching: MatchingSettings = DEFAULT_CONFIG["matching"].copy()
        if matching_settings:
            self.matching.update(matching_settings)
        self.session_settings: SessionSettings = DEFAULT_CONFIG["session"].copy()
        if session_settings:
            self.session_settings.update(session_settings)

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_get('/settings', self._handle_get_settings)
        self.app.router.add_post('/api/assess', self._handle_assess)
        self.app.router.add_post('/api/fallback-assessment', self._handle_fallback_assessment)

    def published_settings(self) -> dict[str, object]:
        """
        Settings published to clients.

        Queue and throttle settings only configure ThreadedSession and are
        not sent.
        """
        return {
            "matching": dict(self.matching),
            "session": {"max_restarts": self.session_settings["max_restarts"]},
        }

    def _new_session(self, conn: ClientConnection, words: list[str]) -> ReadingSession:
        return ReadingSession(
            words,
            conn.recognizer,
            live_threshold=self.matching["live_threshold"],
            scoring_threshold=self.matching["scoring_threshold"],
            max_restarts=self.session_settings["max_restarts"],
            on_update=conn.queue_update
        )

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        conn = ClientConnection(ws)
        self.connections.add(conn)
        logger.info("WebSocket connected. Total: %d", len(self.connections))

        try:
            await ws.send_json({
                "type": "init",
                "settings": self.published_settings(),
            })

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError:
                        await ws.send_json(_error_message("bad-message", "Invalid JSON"))
                        continue
                    if isinstance(data, dict):
                        await self._handle_ws_message(conn, data)
                    await conn.flush()
                elif msg.type == web.WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            if conn.session is not None and conn.session.is_listening:
                conn.session.stop()
            self.connections.discard(conn)
            logger.info("WebSocket disconnected. Total: %d", len(self.connections))

        return ws

    async def _handle_ws_message(self, conn: ClientConnection, data: dict[str, Any]) -> None:
        """Handle incoming WebSocket messages using dispatch pattern."""
        msg_type: object | None = data.get("type")
        if not msg_type or not isinstance(msg_type, str):
            return

        # Message type to handler dispatch
        handlers: dict[str, object] = {
            "hello": self._on_hello_message,
            "permission": self._on_permission_message,
            "load_page": self._on_load_page_message,
            "start_reading": self._on_start_reading_message,
            "stop_reading": self._on_stop_reading_message,
            "recognition": self._on_recognition_message,
        }

        handler: object | None = handlers.get(msg_type)  # type: ignore[arg-type]
        if handler:
            await handler(conn, data)  # type: ignore[operator]
        else:
            logger.warning("Unhandled WebSocket message: %s", msg_type)
            conn.outbox.append(_error_message("bad-message", f"Unknown message type: {msg_type}"))

    async def _on_hello_message(self, conn: ClientConnection, data: dict[str, Any]) -> None:
        """Client reports its speech engine capabilities."""
        conn.recognizer.supported = bool(data.get("supported", False))
        conn.recognizer.permission_granted = bool(data.get("permissionGranted", True))
        logger.info("Client speech support: %s", conn.recognizer.supported)

    async def _on_permission_message(self, conn: ClientConnection, data: dict[str, Any]) -> None:
        """Client re-requested microphone access and reports the outcome."""
        conn.recognizer.permission_granted = bool(data.get("granted", False))

    async def _on_load_page_message(self, conn: ClientConnection, data: dict[str, Any]) -> None:
        """Load the page the child is about to read."""
        try:
            if "page" in data:
                page = StoryPage.from_dict(data["page"])
            else:
                words = data.get("words")
                if not isinstance(words, list):
                    raise StoryFormatError("load_page needs a page or a words list")
                page = StoryPage(page_number=0, text=" ".join(str(w) for w in words))
        except StoryFormatError as e:
            conn.outbox.append(_error_message(e.kind, str(e)))
            return

        if conn.session is not None and conn.session.is_listening:
            conn.session.stop()

        conn.page = page
        words = page.reference_words()
        conn.session = self._new_session(conn, words)
        conn.outbox.append({
            "type": "page_loaded",
            "pageNumber": page.page_number,
            "words": words,
        })

    async def _on_start_reading_message(self, conn: ClientConnection, _data: dict[str, Any]) -> None:
        if conn.session is None:
            conn.outbox.append(_error_message("no-page", "Load a page before reading"))
            return
        try:
            conn.session.start()
        except ReadalongError as e:
            conn.outbox.append(_error_message(e.kind, str(e)))

    async def _on_stop_reading_message(self, conn: ClientConnection, _data: dict[str, Any]) -> None:
        if conn.session is None:
            return
        was_listening = conn.session.is_listening
        conn.session.stop()
        if was_listening:
            self._queue_assessment(conn)

    async def _on_recognition_message(self, conn: ClientConnection, data: dict[str, Any]) -> None:
        """Forward a recognition event from the browser to the session."""
        event_data = data.get("event")
        if not isinstance(event_data, dict):
            conn.outbox.append(_error_message("bad-event", "Missing event"))
            return
        try:
            event = event_from_dict(event_data)
        except ValueError as e:
            conn.outbox.append(_error_message("bad-event", str(e)))
            return

        if isinstance(event, RecognitionError) and event.kind.is_permission_error:
            # Only an explicit "permission" message from the client re-enables it
            conn.recognizer.permission_granted = False

        was_listening = conn.session is not None and conn.session.is_listening
        conn.recognizer.deliver(event)
        if (was_listening and conn.session is not None
                and conn.session.state is SessionState.STOPPED):
            self._queue_assessment(conn)

    def _queue_assessment(self, conn: ClientConnection) -> None:
        """Queue the assessment of the attempt that just ended."""
        session = conn.session
        if session is None or session.assessment is None:
            return
        message: dict[str, object] = {
            "type": "assessment",
            "transcript": session.transcript,
            "assessment": session.assessment.to_dict(),
        }
        if conn.page is not None:
            message["reading"] = fallback_assessment(
                conn.page, session.transcript, session.scoring_threshold).to_dict()
        conn.outbox.append(message)

    async def _handle_get_settings(self, request: web.Request) -> web.Response:
        """Return the matching and session settings."""
        return web.json_response(self.published_settings())

    async def _read_json(self, request: web.Request) -> dict[str, Any] | None:
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return data if isinstance(data, dict) else None

    async def _handle_assess(self, request: web.Request) -> web.Response:
        """Score an attempt: {expected, actual} -> page assessment."""
        data = await self._read_json(request)
        if data is None:
            return web.json_response({"message": "Invalid JSON body"}, status=400)

        expected = data.get("expected")
        actual = data.get("actual")
        if not isinstance(expected, str) or not isinstance(actual, str) or not expected.strip():
            return web.json_response({"message": "Missing required fields"}, status=400)

        result = assess(expected, actual, self.matching["scoring_threshold"])
        return web.json_response(result.to_dict())

    async def _handle_fallback_assessment(self, request: web.Request) -> web.Response:
        """Pronunciation-style assessment without the LLM: {page, actual}."""
        data = await self._read_json(request)
        if data is None:
            return web.json_response({"message": "Invalid JSON body"}, status=400)

        actual = data.get("actual")
        if not isinstance(actual, str) or not isinstance(data.get("page"), dict):
            return web.json_response({"message": "Missing required fields"}, status=400)
        try:
            page = StoryPage.from_dict(data["page"])
        except StoryFormatError as e:
            return web.json_response({"message": str(e)}, status=400)

        result = fallback_assessment(page, actual, self.matching["scoring_threshold"])
        return web.json_response(result.to_dict())

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        print(f"Web server running at http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the web server."""
        # Close all WebSocket connections
        for conn in list(self.connections):
            with contextlib.suppress(Exception):
                await conn.ws.close()
        self.connections.clear()

        if self.runner:
            await self.runner.cleanup()
