"""Tests for the relay application using FastAPI TestClient."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from panerelay import __version__
from panerelay.protocol.messages import (
    ERR_AUTH,
    ERR_INVALID_PARAMS,
    ERR_METHOD_NOT_FOUND,
    ERR_PARSE,
)
from panerelay.server.app import create_app
from panerelay.server.channel import POLICY_VIOLATION


@pytest.fixture
def client(token, fake_multiplexer):
    app = create_app(token, multiplexer=fake_multiplexer, poll_interval=0.01)
    with TestClient(app) as c:
        yield c


def authenticate(ws, token: str) -> None:
    ws.send_json({"id": 0, "method": "auth", "params": {"token": token}})
    assert ws.receive_json() == {"id": 0, "result": {"authenticated": True}}


def receive_response(ws, id: int) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """Read until the response for ``id``, collecting notifications on the way."""
    notifications = []
    while True:
        message = ws.receive_json()
        if message.get("method") == "pane_output":
            notifications.append(message)
            continue
        assert message["id"] == id
        return message, notifications


class TestAppSetup:
    def test_token_is_required(self, fake_multiplexer) -> None:
        with pytest.raises(ValueError):
            create_app("", multiplexer=fake_multiplexer)

    def test_health(self, client) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__, "tmux_running": True}

    def test_health_without_tmux(self, client, fake_multiplexer) -> None:
        fake_multiplexer.running = False
        assert client.get("/health").json()["tmux_running"] is False


class TestAuthGate:
    def test_valid_token(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "list_sessions"})
            resp = ws.receive_json()
        assert resp["id"] == 1
        assert resp["result"][0]["name"] == "main"

    def test_ws_path_alias(self, client, token) -> None:
        with client.websocket_connect("/ws") as ws:
            authenticate(ws, token)

    def test_wrong_token_closes(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/") as ws:
                ws.send_json({"id": 1, "method": "auth", "params": {"token": "nope"}})
                resp = ws.receive_json()
                assert resp == {"id": 1, "error": {"code": ERR_AUTH, "message": "invalid token"}}
                ws.receive_json()
        assert exc_info.value.code == POLICY_VIOLATION

    def test_missing_token_closes(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/") as ws:
                ws.send_json({"id": 1, "method": "auth"})
                assert ws.receive_json()["error"]["code"] == ERR_AUTH
                ws.receive_json()
        assert exc_info.value.code == POLICY_VIOLATION

    def test_request_before_auth_closes(self, client, fake_multiplexer) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/") as ws:
                ws.send_json({"id": 5, "method": "kill_session", "params": {"name": "main"}})
                resp = ws.receive_json()
                assert resp["id"] == 5
                assert resp["error"]["code"] == ERR_AUTH
                assert resp["error"]["message"].startswith("auth required")
                ws.receive_json()
        assert exc_info.value.code == POLICY_VIOLATION
        assert fake_multiplexer.killed == []

    def test_parse_error_before_auth_keeps_connection(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            ws.send_text("{not json")
            resp = ws.receive_json()
            assert resp["id"] is None
            assert resp["error"]["code"] == ERR_PARSE
            authenticate(ws, token)

    def test_second_auth_is_unknown(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "auth", "params": {"token": token}})
            resp = ws.receive_json()
        assert resp["error"] == {"code": ERR_METHOD_NOT_FOUND, "message": "unknown method: auth"}


class TestRequests:
    def test_responses_follow_request_order(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "list_panes", "params": {}})
            ws.send_json({
                "id": 2, "method": "send_command",
                "params": {"target": "main", "command": "echo hi"},
            })
            ws.send_json({"id": 3, "method": "frobnicate"})
            ws.send_json({"id": 4, "method": "capture_pane", "params": {"target": "main"}})
            responses = [ws.receive_json() for _ in range(4)]

        assert [r["id"] for r in responses] == [1, 2, 3, 4]
        assert responses[0]["error"] == {
            "code": ERR_INVALID_PARAMS, "message": "missing required param: session",
        }
        assert responses[1]["result"] == {"ok": True}
        assert responses[2]["error"]["code"] == ERR_METHOD_NOT_FOUND
        assert "hi" in responses[3]["result"]["output"].splitlines()

    def test_request_without_id(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"method": "list_sessions"})
            assert ws.receive_json()["id"] is None

    def test_malformed_frame_after_auth(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_text("[]")
            assert ws.receive_json()["error"]["code"] == ERR_PARSE
            ws.send_json({"id": 1, "method": "list_sessions"})
            assert ws.receive_json()["id"] == 1

    def test_binary_frames_are_ignored(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_bytes(b"\x00\x01")
            ws.send_json({"id": 1, "method": "list_sessions"})
            assert ws.receive_json()["id"] == 1


class TestSubscriptions:
    def test_subscribe_pushes_pane_output(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "subscribe", "params": {"target": "main"}})
            resp, notifications = receive_response(ws, 1)
            assert resp["result"] == {"subscribed": "main"}

            while not notifications:
                notifications.append(ws.receive_json())

        assert notifications[0] == {
            "id": None,
            "method": "pane_output",
            "params": {"target": "main", "content": "$ "},
        }

    def test_unsubscribe_stops_updates(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "subscribe", "params": {"target": "main"}})
            _, notifications = receive_response(ws, 1)
            if not notifications:
                assert ws.receive_json()["method"] == "pane_output"

            ws.send_json({"id": 2, "method": "unsubscribe", "params": {"target": "main"}})
            resp, _ = receive_response(ws, 2)
            assert resp["result"] == {"unsubscribed": "main"}

            ws.send_json({
                "id": 3, "method": "send_keys",
                "params": {"target": "main", "keys": "ls", "literal": True},
            })
            assert ws.receive_json()["id"] == 3
            ws.send_json({"id": 4, "method": "list_sessions"})
            assert ws.receive_json()["id"] == 4

    def test_subscribe_requires_target(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "subscribe", "params": {}})
            resp = ws.receive_json()
        assert resp == {
            "id": 1,
            "error": {"code": ERR_INVALID_PARAMS, "message": "missing required param: target"},
        }

    def test_unknown_target_is_silent(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 1, "method": "subscribe", "params": {"target": "ghost"}})
            assert ws.receive_json()["result"] == {"subscribed": "ghost"}
            ws.send_json({"id": 2, "method": "list_sessions"})
            assert ws.receive_json()["id"] == 2


class TestNonObjectParams:
    def test_before_auth_closes_with_id(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/") as ws:
                ws.send_json({"id": 1, "method": "list_sessions", "params": []})
                resp = ws.receive_json()
                assert resp["id"] == 1
                assert resp["error"]["code"] == ERR_AUTH
                ws.receive_json()
        assert exc_info.value.code == POLICY_VIOLATION

    def test_after_auth_echoes_id(self, client, token) -> None:
        with client.websocket_connect("/") as ws:
            authenticate(ws, token)
            ws.send_json({"id": 2, "method": "capture_pane", "params": "main"})
            resp = ws.receive_json()
        assert resp == {
            "id": 2,
            "error": {"code": ERR_INVALID_PARAMS, "message": "invalid param: params"},
        }
