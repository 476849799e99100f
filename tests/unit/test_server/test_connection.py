"""Tests for the per-connection auth gate and request handling."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from panerelay.protocol.dispatcher import Dispatcher
from panerelay.protocol.messages import ERR_AUTH, ERR_INTERNAL, ERR_INVALID_PARAMS, ERR_PARSE
from panerelay.server.connection import AuthState, ConnectionHandler


@pytest.fixture
def handler(fake_multiplexer, token) -> ConnectionHandler:
    return ConnectionHandler(AsyncMock(), Dispatcher(fake_multiplexer), token, peer="test")


def frame(id: int | None, method: str, **params) -> str:
    return json.dumps({"id": id, "method": method, "params": params})


class TestAuthGate:
    @pytest.mark.asyncio
    async def test_starts_unauthenticated(self, handler: ConnectionHandler) -> None:
        assert handler.state is AuthState.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_correct_token(self, handler: ConnectionHandler, token: str) -> None:
        resp = await handler.handle_text(frame(1, "auth", token=token))
        assert resp.to_wire() == {"id": 1, "result": {"authenticated": True}}
        assert handler.state is AuthState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_wrong_token(self, handler: ConnectionHandler) -> None:
        resp = await handler.handle_text(frame(1, "auth", token="test-token-12"))
        assert resp.error.code == ERR_AUTH
        assert resp.error.message == "invalid token"
        assert handler.state is AuthState.CLOSED

    @pytest.mark.asyncio
    async def test_non_string_token(self, handler: ConnectionHandler) -> None:
        resp = await handler.handle_text(frame(1, "auth", token=123))
        assert resp.error.code == ERR_AUTH
        assert handler.state is AuthState.CLOSED

    @pytest.mark.asyncio
    async def test_other_method_first(self, handler: ConnectionHandler, fake_multiplexer) -> None:
        resp = await handler.handle_text(frame(2, "new_session", name="x"))
        assert resp.id == 2
        assert resp.error.code == ERR_AUTH
        assert handler.state is AuthState.CLOSED
        assert fake_multiplexer.created == []

    @pytest.mark.asyncio
    async def test_parse_error_keeps_state(self, handler: ConnectionHandler) -> None:
        resp = await handler.handle_text("{")
        assert resp.id is None
        assert resp.error.code == ERR_PARSE
        assert handler.state is AuthState.UNAUTHENTICATED


class TestAuthenticated:
    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self, handler: ConnectionHandler, token: str) -> None:
        await handler.handle_text(frame(0, "auth", token=token))

        resp = await handler.handle_text(frame(1, "subscribe", target="main"))
        assert resp.to_wire() == {"id": 1, "result": {"subscribed": "main"}}
        assert await handler.subscriptions.snapshot() == [("main", "")]

        resp = await handler.handle_text(frame(2, "unsubscribe", target="main"))
        assert resp.to_wire() == {"id": 2, "result": {"unsubscribed": "main"}}
        assert await handler.subscriptions.snapshot() == []

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_target(self, handler: ConnectionHandler, token: str) -> None:
        await handler.handle_text(frame(0, "auth", token=token))
        resp = await handler.handle_text(frame(1, "unsubscribe", target="ghost"))
        assert resp.result == {"unsubscribed": "ghost"}

    @pytest.mark.asyncio
    async def test_dispatch_crash_is_internal_error(self, token: str) -> None:
        dispatcher = MagicMock(spec=Dispatcher)
        dispatcher.dispatch.side_effect = KeyError("boom")
        handler = ConnectionHandler(AsyncMock(), dispatcher, token)

        await handler.handle_text(frame(0, "auth", token=token))
        resp = await handler.handle_text(frame(1, "list_sessions"))
        assert resp.id == 1
        assert resp.error.code == ERR_INTERNAL
        assert resp.error.message.startswith("internal error")


class TestNonObjectParams:
    @pytest.mark.asyncio
    async def test_before_auth_hits_the_gate(self, handler: ConnectionHandler) -> None:
        resp = await handler.handle_text('{"id": 1, "method": "list_sessions", "params": []}')
        assert resp.id == 1
        assert resp.error.code == ERR_AUTH
        assert handler.state is AuthState.CLOSED

    @pytest.mark.asyncio
    async def test_auth_with_non_object_params(self, handler: ConnectionHandler) -> None:
        resp = await handler.handle_text('{"id": 1, "method": "auth", "params": "x"}')
        assert resp.error.message == "invalid token"
        assert handler.state is AuthState.CLOSED

    @pytest.mark.asyncio
    async def test_after_auth_is_invalid_params(self, handler: ConnectionHandler, token: str) -> None:
        await handler.handle_text(frame(0, "auth", token=token))
        for method in ("list_sessions", "subscribe"):
            resp = await handler.handle_text(json.dumps({"id": 4, "method": method, "params": []}))
            assert resp.to_wire() == {
                "id": 4,
                "error": {"code": ERR_INVALID_PARAMS, "message": "invalid param: params"},
            }
        assert handler.state is AuthState.AUTHENTICATED
