# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the WebServer: HTTP scoring endpoints and the WebSocket reading flow.
"""

import pytest
import pytest_asyncio
from aiohttp import test_utils

from readalong.server import WebServer

PAGE = {
    "pageNumber": 1,
    "words": [
        {"text": "Zip", "phonemes": ["Z", "IH1", "P"]},
        {"text": "and", "phonemes": ["AE1", "N", "D"]},
        {"text": "Zap", "phonemes": ["Z", "AE1", "P"]},
        {"text": "are"},
        {"text": "space"},
        {"text": "pirates."},
    ],
    "fryWords": ["and", "are"],
}


@pytest_asyncio.fixture
async def client():
    server = WebServer()
    async with test_utils.TestClient(test_utils.TestServer(server.app)) as test_client:
        yield test_client


async def _open_reader(client, supported=True):
    """Connect, consume init, announce capabilities and load the test page."""
    ws = await client.ws_connect("/ws")
    init = await ws.receive_json()
    assert init["type"] == "init"
    await ws.send_json({"type": "hello", "supported": supported})
    await ws.send_json({"type": "load_page", "page": PAGE})
    loaded = await ws.receive_json()
    assert loaded["type"] == "page_loaded"
    return ws


async def _recognize(ws, **event):
    await ws.send_json({"type": "recognition", "event": event})


class TestHttpEndpoints:

    @pytest.mark.asyncio
    async def test_settings(self, client):
        resp = await client.get("/settings")
        assert resp.status == 200
        data = await resp.json()
        assert data["matching"] == {"live_threshold": 0.7, "scoring_threshold": 0.8}
        assert data["session"] == {"max_restarts": 3}

    @pytest.mark.asyncio
    async def test_assess(self, client):
        resp = await client.post("/api/assess", json={
            "expected": "Zip and Zap are space pirates.",
            "actual": "zip and zap",
        })
        assert resp.status == 200
        data = await resp.json()
        assert data["accuracyPct"] == 50
        assert [r["matched"] for r in data["perWordResults"]] == \
            [True, True, True, False, False, False]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"expected": "Zip"},
        {"actual": "zip"},
        {"expected": "   ", "actual": "zip"},
        {"expected": 5, "actual": "zip"},
    ])
    async def test_assess_missing_fields(self, client, body):
        resp = await client.post("/api/assess", json=body)
        assert resp.status == 400
        assert "message" in await resp.json()

    @pytest.mark.asyncio
    async def test_assess_invalid_json(self, client):
        resp = await client.post("/api/assess", data="{nope",
                                 headers={"Content-Type": "application/json"})
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_fallback_assessment(self, client):
        resp = await client.post("/api/fallback-assessment", json={
            "page": PAGE,
            "actual": "zip and zap are space pirates",
        })
        assert resp.status == 200
        data = await resp.json()
        assert data["sentence"] == "Zip and Zap are space pirates."
        assert data["scores"] == {"accuracyPct": 100, "fryHitPct": 100, "phonemeHitPct": 100}

    @pytest.mark.asyncio
    async def test_fallback_assessment_bad_page(self, client):
        resp = await client.post("/api/fallback-assessment", json={
            "page": {"pageNumber": "one"},
            "actual": "zip",
        })
        assert resp.status == 400


class TestReadingOverWebSocket:

    @pytest.mark.asyncio
    async def test_init_carries_settings(self, client):
        ws = await client.ws_connect("/ws")
        init = await ws.receive_json()
        assert init["settings"]["matching"]["scoring_threshold"] == 0.8
        await ws.close()

    @pytest.mark.asyncio
    async def test_reading_flow(self, client):
        ws = await _open_reader(client)

        await ws.send_json({"type": "start_reading"})
        assert await ws.receive_json() == {"type": "recognizer", "command": "start"}
        update = await ws.receive_json()
        assert update["type"] == "update"
        assert update["state"] == "listening"
        assert update["highlightedIndex"] == -1

        await _recognize(ws, kind="interim", text="Zip and")
        update = await ws.receive_json()
        assert update["highlightedIndex"] == 1
        assert update["lastDetectedWord"] == "and"

        await _recognize(ws, kind="final", text="Zip and Zap")
        update = await ws.receive_json()
        assert update["highlightedIndex"] == 2
        assert update["transcript"] == "Zip and Zap"

        await ws.send_json({"type": "stop_reading"})
        assert await ws.receive_json() == {"type": "recognizer", "command": "stop"}
        update = await ws.receive_json()
        assert update["state"] == "stopped"
        assert update["highlightedIndex"] == -1

        assessment = await ws.receive_json()
        assert assessment["type"] == "assessment"
        assert assessment["transcript"] == "Zip and Zap"
        assert assessment["assessment"]["accuracyPct"] == 50
        assert assessment["reading"]["scores"]["fryHitPct"] == 50

        await ws.close()

    @pytest.mark.asyncio
    async def test_start_without_page(self, client):
        ws = await client.ws_connect("/ws")
        await ws.receive_json()
        await ws.send_json({"type": "start_reading"})
        error = await ws.receive_json()
        assert error == {"type": "error", "kind": "no-page",
                         "message": "Load a page before reading"}
        await ws.close()

    @pytest.mark.asyncio
    async def test_start_without_speech_support(self, client):
        ws = await _open_reader(client, supported=False)
        await ws.send_json({"type": "start_reading"})
        error = await ws.receive_json()
        assert error["type"] == "error"
        assert error["kind"] == "unsupported"
        await ws.close()

    @pytest.mark.asyncio
    async def test_permission_revoked(self, client):
        ws = await _open_reader(client)
        await ws.send_json({"type": "start_reading"})
        await ws.receive_json()
        await ws.receive_json()

        await _recognize(ws, kind="error", error="not-allowed")
        assert await ws.receive_json() == {"type": "recognizer", "command": "stop"}
        update = await ws.receive_json()
        assert update["state"] == "stopped"
        assert update["error"]["kind"] == "permission-denied"
        assessment = await ws.receive_json()
        assert assessment["type"] == "assessment"

        # Stays denied until the client reports access again
        await ws.send_json({"type": "start_reading"})
        update = await ws.receive_json()
        assert update["type"] == "update"
        error = await ws.receive_json()
        assert error["kind"] == "permission-denied"

        await ws.send_json({"type": "permission", "granted": True})
        await ws.send_json({"type": "start_reading"})
        assert await ws.receive_json() == {"type": "recognizer", "command": "start"}
        await ws.close()

    @pytest.mark.asyncio
    async def test_engine_restarts(self, client):
        ws = await _open_reader(client)
        await ws.send_json({"type": "start_reading"})
        await ws.receive_json()
        await ws.receive_json()

        await _recognize(ws, kind="end")
        assert await ws.receive_json() == {"type": "recognizer", "command": "start"}
        update = await ws.receive_json()
        assert update["state"] == "listening"
        await ws.close()

    @pytest.mark.asyncio
    async def test_load_page_from_words(self, client):
        ws = await client.ws_connect("/ws")
        await ws.receive_json()
        await ws.send_json({"type": "load_page", "words": ["Zip", "and", "Zap"]})
        loaded = await ws.receive_json()
        assert loaded == {"type": "page_loaded", "pageNumber": 0, "words": ["Zip", "and", "Zap"]}
        await ws.close()

    @pytest.mark.asyncio
    async def test_bad_messages(self, client):
        ws = await client.ws_connect("/ws")
        await ws.receive_json()

        await ws.send_str("{not json")
        assert (await ws.receive_json())["kind"] == "bad-message"

        await ws.send_json({"type": "dance"})
        assert (await ws.receive_json())["kind"] == "bad-message"

        await ws.send_json({"type": "recognition", "event": {"kind": "shout"}})
        assert (await ws.receive_json())["kind"] == "bad-event"

        await ws.send_json({"type": "load_page"})
        assert (await ws.receive_json())["kind"] == "story-format"

        await ws.close()


def test_settings_override_defaults():
    server = WebServer(matching_settings={"live_threshold": 0.6, "scoring_threshold": 0.9})
    assert server.matching["live_threshold"] == 0.6
    assert server.session_settings["max_restarts"] == 3


def test_threaded_settings_stay_server_side():
    server = WebServer(session_settings={
        "max_restarts": 4, "max_queue_size": 10, "interim_throttle_ms": 30})
    published = server.published_settings()
    assert published["session"] == {"max_restarts": 4}
    assert server.session_settings["max_queue_size"] == 10
