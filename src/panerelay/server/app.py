"""FastAPI application serving the panerelay WebSocket.

Endpoints:

    WS   /          -> protocol connection (also mounted at /ws)
    GET  /health    -> {"status": "ok", "tmux_running": true, ...}

Ping/pong frames are answered by uvicorn's WebSocket implementation.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, WebSocket
from pydantic import BaseModel

from panerelay import __version__
from panerelay.files.browser import FileBrowser
from panerelay.multiplexer.base import Multiplexer
from panerelay.protocol.dispatcher import Dispatcher
from panerelay.server.connection import ConnectionHandler
from panerelay.server.subscriptions import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    tmux_running: bool = False


def create_app(
    token: str,
    multiplexer: Multiplexer | None = None,
    files: FileBrowser | None = None,
    tmux_socket: str | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> FastAPI:
    """Create the relay application.

    Args:
        token: Token clients must send in their ``auth`` request.
        multiplexer: Optional pre-configured backend (for testing).
                     Defaults to a :class:`TmuxExecutor`.
        files: Optional pre-configured file browser (for testing).
        tmux_socket: Alternate tmux socket for the default backend.
        poll_interval: Subscription tick in seconds.
    """
    if not token:
        raise ValueError("an access token is required")

    if multiplexer is None:
        from panerelay.multiplexer.tmux import TmuxExecutor
        multiplexer = TmuxExecutor(socket_path=tmux_socket)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        mux: Multiplexer = app.state.dispatcher.multiplexer
        loop = asyncio.get_running_loop()
        running = await loop.run_in_executor(None, mux.is_server_running)
        if running:
            logger.info("Relay started, tmux server is running")
        else:
            logger.warning(
                "Relay started but no tmux server answered; "
                "session requests will fail until one is started"
            )
        yield
        logger.info("Relay stopped")

    app = FastAPI(
        title="panerelay",
        description="Remote control of tmux sessions over a WebSocket",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.dispatcher = Dispatcher(multiplexer, files)
    app.state.token = token
    app.state.poll_interval = poll_interval

    @app.get("/health")
    async def health_check() -> HealthResponse:
        mux: Multiplexer = app.state.dispatcher.multiplexer
        loop = asyncio.get_running_loop()
        running = await loop.run_in_executor(None, mux.is_server_running)
        return HealthResponse(status="ok", tmux_running=running)

    async def relay(websocket: WebSocket) -> None:
        await websocket.accept()
        client = websocket.client
        peer = f"{client.host}:{client.port}" if client else "unknown"
        logger.info("Client connected: %s", peer)
        handler = ConnectionHandler(
            websocket,
            app.state.dispatcher,
            token=app.state.token,
            poll_interval=app.state.poll_interval,
            peer=peer,
        )
        await handler.run()
        logger.info("Client disconnected: %s", peer)

    app.add_api_websocket_route("/", relay)
    app.add_api_websocket_route("/ws", relay)

    return app


def main(
    token: str,
    host: str = "0.0.0.0",
    port: int = 9876,
    tmux_socket: str | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """Run the relay server."""
    app = create_app(token=token, tmux_socket=tmux_socket, poll_interval=poll_interval)
    uvicorn.run(app, host=host, port=port)
