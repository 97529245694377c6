"""In-memory channel broker for testing and single-process runs.

No external dependencies. Messages are handed to callbacks in publish order,
awaited one after another, which gives per-channel FIFO for free.  Like
Redis PUBLISH there is no buffering: only callbacks subscribed at publish
time receive a message.

Several services can share one ``MemoryBroker`` to exercise the
cross-service flow in one process.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from usersync.core.errors import TransportFailure
from usersync.core.interfaces import MessageCallback

logger = logging.getLogger(__name__)


class MemoryBroker:
    """In-process pub/sub.  Safe within a single asyncio event loop."""

    def __init__(self) -> None:
        # channel → list of callbacks
        self._callbacks: dict[str, list[MessageCallback]] = defaultdict(list)
        self._history: list[tuple[str, str]] = []
        self._connected = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False
        self._callbacks.clear()

    def disconnect(self) -> None:
        """Make the broker unreachable without dropping subscriptions.

        Simulates a network partition: publishes fail with
        ``TransportFailure`` until :meth:`connect` is called again.
        """
        self._connected = False

    # ------------------------------------------------------------------
    # Publish / Subscribe
    # ------------------------------------------------------------------

    async def publish(self, channel: str, message: str) -> int:
        """Deliver *message* to every callback on *channel*.

        Returns the number of callbacks that were invoked.  A callback that
        raises is logged and skipped; the remaining callbacks still run.
        """
        if not self._connected:
            raise TransportFailure("MemoryBroker is not connected")

        self._history.append((channel, message))

        # Snapshot so a callback that (un)subscribes doesn't disturb the loop.
        callbacks = list(self._callbacks.get(channel, ()))
        for callback in callbacks:
            try:
                await callback(channel, message)
            except Exception:
                logger.exception("Callback error on channel=%s", channel)
        return len(callbacks)

    async def subscribe(self, channel: str, callback: MessageCallback) -> None:
        if not self._connected:
            raise TransportFailure("MemoryBroker is not connected")
        self._callbacks[channel].append(callback)

    async def unsubscribe(self, channel: str) -> None:
        self._callbacks.pop(channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._callbacks.get(channel, ()))

    # ------------------------------------------------------------------
    # Testing helpers
    # ------------------------------------------------------------------

    def get_history(self, channel: str | None = None) -> list[tuple[str, str]]:
        """Get published messages, optionally filtered by channel. For testing."""
        if channel is None:
            return list(self._history)
        return [(c, m) for c, m in self._history if c == channel]

    def clear_history(self) -> None:
        """Clear message history. For testing."""
        self._history.clear()
