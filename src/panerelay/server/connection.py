"""Per-connection protocol engine.

A :class:`ConnectionHandler` drives one WebSocket from accept to close:

    UNAUTHENTICATED --auth ok--> AUTHENTICATED --close--> CLOSED
           |
           +--- wrong token / any other method ---> CLOSED

Before authentication only ``auth`` is accepted; anything else is answered
with an auth error and the connection is closed. Once authenticated,
``subscribe``/``unsubscribe`` update the connection's subscription set and
every other method goes to the :class:`Dispatcher` in a worker thread.
"""

from __future__ import annotations

import asyncio
import enum
import hmac
import logging

from fastapi import WebSocket, WebSocketDisconnect

from panerelay.protocol.dispatcher import Dispatcher
from panerelay.protocol.messages import (
    ERR_INTERNAL,
    AuthError,
    InvalidParams,
    ParseError,
    Request,
    Response,
    decode_request,
)
from panerelay.protocol.params import AuthParams, TargetParams
from panerelay.server.channel import POLICY_VIOLATION, ChannelClosed, OutboundChannel
from panerelay.server.subscriptions import (
    DEFAULT_POLL_INTERVAL,
    SubscriptionEngine,
    SubscriptionSet,
)

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = (
    'auth required: send {"method":"auth","params":{"token":"..."}} first'
)


class AuthState(str, enum.Enum):
    """Authentication state of a connection."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class ConnectionHandler:
    """Owns one client connection: auth gate, request loop and teardown.

    Args:
        websocket: An accepted WebSocket.
        dispatcher: Executes authenticated requests.
        token: The token clients must present in ``auth``.
        poll_interval: Tick of the subscription engine, in seconds.
        peer: Client address, used in log messages.
    """

    def __init__(
        self,
        websocket: WebSocket,
        dispatcher: Dispatcher,
        token: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        peer: str = "unknown",
    ) -> None:
        self._websocket = websocket
        self._dispatcher = dispatcher
        self._token = token
        self._peer = peer
        self._state = AuthState.UNAUTHENTICATED
        self._channel = OutboundChannel(websocket)
        self._subscriptions = SubscriptionSet()
        self._engine = SubscriptionEngine(
            dispatcher.multiplexer,
            self._subscriptions,
            self._channel,
            interval=poll_interval,
        )

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def subscriptions(self) -> SubscriptionSet:
        return self._subscriptions

    async def run(self) -> None:
        """Process inbound frames until the connection closes."""
        self._engine.start()
        try:
            while self._state is not AuthState.CLOSED:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    self._channel.mark_closed()
                    break
                text = message.get("text")
                if text is None:
                    # binary frames are not part of the protocol
                    continue
                response = await self.handle_text(text)
                await self._channel.send(response)
                if self._state is AuthState.CLOSED:
                    await self._channel.close(code=POLICY_VIOLATION)
        except WebSocketDisconnect:
            self._channel.mark_closed()
        except ChannelClosed as e:
            logger.info("Dropping connection %s: %s", self._peer, e)
        finally:
            self._state = AuthState.CLOSED
            await self._engine.stop()

    async def handle_text(self, text: str) -> Response:
        """Handle one text frame and return the response to write."""
        try:
            request = decode_request(text)
        except ParseError as e:
            return Response.from_error(None, e)

        if self._state is AuthState.UNAUTHENTICATED:
            return self._authenticate(request)
        return await self._handle_request(request)

    def _authenticate(self, request: Request) -> Response:
        if request.method != "auth":
            self._state = AuthState.CLOSED
            logger.warning(
                "Rejected %s from %s before authentication", request.method, self._peer
            )
            return Response.from_error(request.id, AuthError(AUTH_REQUIRED_MESSAGE))

        try:
            provided = AuthParams.parse(request.params).token
        except InvalidParams:
            provided = ""
        if not hmac.compare_digest(provided.encode(), self._token.encode()):
            self._state = AuthState.CLOSED
            logger.warning("Invalid token from %s", self._peer)
            return Response.from_error(request.id, AuthError("invalid token"))

        self._state = AuthState.AUTHENTICATED
        logger.info("Client %s authenticated", self._peer)
        return Response.ok(request.id, {"authenticated": True})

    async def _handle_request(self, request: Request) -> Response:
        if request.method == "subscribe":
            return await self._subscribe(request)
        if request.method == "unsubscribe":
            return await self._unsubscribe(request)

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._dispatcher.dispatch, request)
        except Exception as e:
            logger.exception("Unhandled error while dispatching %s", request.method)
            return Response.fail(request.id, ERR_INTERNAL, f"internal error: {e}")

    async def _subscribe(self, request: Request) -> Response:
        try:
            params = TargetParams.parse(request.params)
        except InvalidParams as e:
            return Response.from_error(request.id, e)
        await self._subscriptions.add(params.target)
        logger.debug("%s subscribed to %s", self._peer, params.target)
        return Response.ok(request.id, {"subscribed": params.target})

    async def _unsubscribe(self, request: Request) -> Response:
        try:
            params = TargetParams.parse(request.params)
        except InvalidParams as e:
            return Response.from_error(request.id, e)
        await self._subscriptions.remove(params.target)
        logger.debug("%s unsubscribed from %s", self._peer, params.target)
        return Response.ok(request.id, {"unsubscribed": params.target})
