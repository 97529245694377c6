"""Redis pub/sub channel broker.

Uses plain Redis PUBLISH/SUBSCRIBE, which is exactly at-most-once:
a message reaches the clients subscribed at the moment it is published
and is then gone.  A consumer that is down, slow to connect, or between
reconnects misses it for good.  There is no acknowledgement, no stream
and no replay.

One listener task per broker reads the shared pub/sub connection and
hands each message to the callback registered for its channel, in the
order Redis delivered them.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from usersync.core.errors import TransportFailure
from usersync.core.interfaces import MessageCallback

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class RedisPubSubBroker:
    """Broker backed by a Redis server.

    Args:
        redis_url: Connection URL (``redis://host:port/db``).
        socket_timeout: Seconds before a Redis command times out.
        poll_timeout: Seconds the listener waits for a message per poll.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        socket_timeout: float = 5.0,
        poll_timeout: float = 1.0,
    ) -> None:
        self._redis_url = redis_url
        self._socket_timeout = socket_timeout
        self._poll_timeout = poll_timeout
        self._redis: aioredis.Redis | None = None
        self._pubsub: aioredis.client.PubSub | None = None
        self._callbacks: dict[str, MessageCallback] = {}
        self._listener: asyncio.Task | None = None
        self._running = False

        # Observability
        self._error_counts: dict[str, int] = defaultdict(int)
        self._messages_received: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._running and self._redis is not None

    async def connect(self) -> None:
        """Open the connection and verify the server answers."""
        client = aioredis.from_url(
            self._redis_url,
            decode_responses=True,
            socket_timeout=self._socket_timeout,
        )
        try:
            await client.ping()
        except _TRANSPORT_ERRORS as exc:
            await client.aclose()
            raise TransportFailure(f"Redis unreachable at {self._redis_url}: {exc}") from exc

        self._redis = client
        self._pubsub = client.pubsub(ignore_subscribe_messages=True)
        self._running = True
        logger.info("Connected to Redis at %s", self._redis_url)

    async def close(self) -> None:
        """Stop the listener and close the connection."""
        self._running = False
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None

        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        self._callbacks.clear()

    # ------------------------------------------------------------------
    # Publish / Subscribe
    # ------------------------------------------------------------------

    async def publish(self, channel: str, message: str) -> int:
        """PUBLISH *message*; returns the number of receiving clients."""
        if self._redis is None:
            raise TransportFailure("RedisPubSubBroker not connected")
        try:
            return await self._redis.publish(channel, message)
        except _TRANSPORT_ERRORS as exc:
            self._error_counts[f"publish/{channel}"] += 1
            raise TransportFailure(f"PUBLISH {channel} failed: {exc}") from exc

    async def subscribe(self, channel: str, callback: MessageCallback) -> None:
        """SUBSCRIBE to *channel* and start the listener if needed."""
        if self._pubsub is None:
            raise TransportFailure("RedisPubSubBroker not connected")
        try:
            await self._pubsub.subscribe(channel)
        except _TRANSPORT_ERRORS as exc:
            raise TransportFailure(f"SUBSCRIBE {channel} failed: {exc}") from exc

        self._callbacks[channel] = callback
        if self._listener is None:
            self._listener = asyncio.create_task(
                self._listen_loop(), name="redis-pubsub-listener",
            )

    async def unsubscribe(self, channel: str) -> None:
        self._callbacks.pop(channel, None)
        if self._pubsub is None:
            return
        try:
            await self._pubsub.unsubscribe(channel)
        except _TRANSPORT_ERRORS as exc:
            raise TransportFailure(f"UNSUBSCRIBE {channel} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Listener
    # ------------------------------------------------------------------

    async def _listen_loop(self) -> None:
        """Read messages until stopped.

        Connection errors are logged and retried after a pause; whatever
        was published while the connection was down is lost.
        """
        assert self._pubsub is not None

        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self._poll_timeout,
                )
            except asyncio.CancelledError:
                break
            except _TRANSPORT_ERRORS:
                logger.exception("Redis pub/sub listener error")
                self._error_counts["listen"] += 1
                await asyncio.sleep(1)
                continue

            if message is None or message.get("type") != "message":
                continue
            await self._dispatch(message["channel"], message["data"])

    async def _dispatch(self, channel: str, data: str) -> None:
        self._messages_received += 1
        callback = self._callbacks.get(channel)
        if callback is None:
            logger.debug("No callback for channel=%s", channel)
            return
        try:
            await callback(channel, data)
        except Exception:
            self._error_counts[f"callback/{channel}"] += 1
            logger.exception("Callback error on channel=%s", channel)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_error_counts(self) -> dict[str, int]:
        """Return per-operation error counts."""
        return dict(self._error_counts)

    @property
    def messages_received(self) -> int:
        return self._messages_received
