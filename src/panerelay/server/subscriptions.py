"""Live pane updates for subscribed targets.

Each connection owns a :class:`SubscriptionSet` (target -> last content
sent) and a :class:`SubscriptionEngine` task that re-captures every
subscribed target on a fixed tick and pushes ``pane_output`` when the
content changed.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from panerelay.multiplexer.base import Multiplexer
from panerelay.protocol.messages import Notification
from panerelay.server.channel import ChannelClosed, OutboundChannel

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.2


class SubscriptionSet:
    """Targets a connection watches, guarded by an asyncio lock.

    New entries start with empty content, so the first successful capture
    of a target always counts as a change.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def add(self, target: str) -> None:
        async with self._lock:
            self._entries[target] = ""

    async def remove(self, target: str) -> bool:
        async with self._lock:
            return self._entries.pop(target, None) is not None

    async def snapshot(self) -> list[tuple[str, str]]:
        """Copy of the current ``(target, last content)`` pairs."""
        async with self._lock:
            return list(self._entries.items())

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[dict[str, str]]:
        """Hold the lock and expose the underlying mapping."""
        async with self._lock:
            yield self._entries


class SubscriptionEngine:
    """Polls subscribed targets and pushes changed content.

    Args:
        multiplexer: Used to capture targets (in a worker thread).
        subscriptions: The connection's subscription set.
        channel: The connection's outbound writer.
        interval: Seconds between ticks.
    """

    def __init__(
        self,
        multiplexer: Multiplexer,
        subscriptions: SubscriptionSet,
        channel: OutboundChannel,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._multiplexer = multiplexer
        self._subscriptions = subscriptions
        self._channel = channel
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Cancel the polling task without draining pending updates."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run(self) -> None:
        """Tick until cancelled or the channel closes."""
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.poll_once()
            except ChannelClosed:
                logger.debug("Outbound channel closed, stopping subscription polling")
                return

    async def poll_once(self) -> int:
        """Run a single tick and return the number of notifications sent.

        A target whose capture fails is skipped until the next tick. A
        target unsubscribed while its capture was running is dropped.

        Raises:
            ChannelClosed: If a notification could not be written.
        """
        entries = await self._subscriptions.snapshot()
        if not entries:
            return 0

        loop = asyncio.get_running_loop()
        sent = 0
        for target, previous in entries:
            try:
                content = await loop.run_in_executor(
                    None, self._multiplexer.capture_pane, target, None
                )
            except Exception as e:
                logger.debug("Capture of %s failed, retrying next tick: %s", target, e)
                continue
            if content == previous:
                continue

            # Sent under the lock: no update follows a completed unsubscribe.
            async with self._subscriptions.locked() as current:
                if current.get(target) != previous:
                    continue
                current[target] = content
                await self._channel.send(Notification.pane_output(target, content))
                sent += 1
        return sent
