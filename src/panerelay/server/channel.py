"""Serialized outbound writer shared by one connection's tasks.

The request loop and the subscription engine both write to the same
WebSocket. All writes go through :class:`OutboundChannel`, which sends
one complete message at a time under a lock.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

from panerelay.protocol.messages import OutboundMessage, encode_message

logger = logging.getLogger(__name__)

# WebSocket close code sent after a failed authentication
POLICY_VIOLATION = 1008


class ChannelClosed(Exception):
    """Raised when writing to a closed or broken connection."""


class OutboundChannel:
    """Lock-guarded writer for responses and notifications."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: OutboundMessage) -> None:
        """Write ``message`` as one text frame.

        Raises:
            ChannelClosed: If the channel was closed or the write failed.
                A failed write closes the channel for every writer.
        """
        text = encode_message(message)
        async with self._lock:
            if self._closed:
                raise ChannelClosed("connection is closed")
            try:
                await self._websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                self._closed = True
                raise ChannelClosed(f"write failed: {e}") from e

    async def close(self, code: int = 1000) -> None:
        """Send a close frame. Safe to call more than once."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                await self._websocket.close(code=code)
            except (RuntimeError, OSError) as e:
                logger.debug("Close frame not delivered: %s", e)

    def mark_closed(self) -> None:
        """Stop accepting writes after the peer went away."""
        self._closed = True
