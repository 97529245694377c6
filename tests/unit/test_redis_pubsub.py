"""RedisPubSubBroker unit tests (no Redis required).

The Redis client is replaced with AsyncMock objects; these tests pin the
broker's contract: error wrapping, callback routing, lifecycle.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from usersync.bus.factory import create_broker
from usersync.bus.memory_broker import MemoryBroker
from usersync.bus.redis_pubsub import RedisPubSubBroker
from usersync.core.config import BusConfig
from usersync.core.enums import BusBackend
from usersync.core.errors import TransportFailure


async def _no_message(**kwargs):
    await asyncio.sleep(0.01)
    return None


def _fake_client() -> MagicMock:
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.publish = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.get_message = AsyncMock(side_effect=_no_message)
    client.pubsub.return_value = pubsub
    return client


class TestConstruction:
    def test_defaults(self):
        broker = RedisPubSubBroker()
        assert not broker.is_connected
        assert broker.get_error_counts() == {}
        assert broker.messages_received == 0

    def test_factory_selects_backend(self):
        assert isinstance(create_broker(BusConfig(backend=BusBackend.MEMORY)), MemoryBroker)
        assert isinstance(create_broker(BusConfig(backend=BusBackend.REDIS)), RedisPubSubBroker)


class TestLifecycle:
    async def test_connect_pings(self):
        client = _fake_client()
        with patch("usersync.bus.redis_pubsub.aioredis.from_url", return_value=client):
            broker = RedisPubSubBroker()
            await broker.connect()

        assert broker.is_connected
        client.ping.assert_awaited_once()
        await broker.close()
        assert not broker.is_connected
        client.aclose.assert_awaited()

    async def test_connect_failure_is_transport_failure(self):
        client = _fake_client()
        client.ping.side_effect = RedisConnectionError("refused")
        with patch("usersync.bus.redis_pubsub.aioredis.from_url", return_value=client):
            broker = RedisPubSubBroker()
            with pytest.raises(TransportFailure, match="unreachable"):
                await broker.connect()
        assert not broker.is_connected


class TestPublish:
    async def test_publish_not_connected(self):
        with pytest.raises(TransportFailure):
            await RedisPubSubBroker().publish("events:a", "{}")

    async def test_publish_returns_receivers(self):
        client = _fake_client()
        client.publish.return_value = 2
        with patch("usersync.bus.redis_pubsub.aioredis.from_url", return_value=client):
            broker = RedisPubSubBroker()
            await broker.connect()

        assert await broker.publish("events:a", "{}") == 2
        client.publish.assert_awaited_once_with("events:a", "{}")
        await broker.close()

    async def test_publish_error_wrapped_and_counted(self):
        client = _fake_client()
        client.publish.side_effect = RedisConnectionError("gone")
        with patch("usersync.bus.redis_pubsub.aioredis.from_url", return_value=client):
            broker = RedisPubSubBroker()
            await broker.connect()

        with pytest.raises(TransportFailure):
            await broker.publish("events:a", "{}")
        assert broker.get_error_counts() == {"publish/events:a": 1}
        await broker.close()


class TestSubscribe:
    async def test_subscribe_not_connected(self):
        async def callback(channel: str, message: str) -> None:
            pass

        with pytest.raises(TransportFailure):
            await RedisPubSubBroker().subscribe("events:a", callback)

    async def test_subscribe_starts_listener_and_close_stops_it(self):
        client = _fake_client()
        with patch("usersync.bus.redis_pubsub.aioredis.from_url", return_value=client):
            broker = RedisPubSubBroker(poll_timeout=0.01)
            await broker.connect()

        async def callback(channel: str, message: str) -> None:
            pass

        await broker.subscribe("events:a", callback)
        client.pubsub.return_value.subscribe.assert_awaited_once_with("events:a")
        assert broker._listener is not None

        await broker.close()
        assert broker._listener is None

    async def test_dispatch_routes_by_channel(self):
        received = []

        async def callback(channel: str, message: str) -> None:
            received.append((channel, message))

        broker = RedisPubSubBroker()
        broker._callbacks["events:a"] = callback

        await broker._dispatch("events:a", "payload")
        await broker._dispatch("events:b", "ignored")

        assert received == [("events:a", "payload")]
        assert broker.messages_received == 2

    async def test_dispatch_absorbs_callback_errors(self):
        async def callback(channel: str, message: str) -> None:
            raise RuntimeError("boom")

        broker = RedisPubSubBroker()
        broker._callbacks["events:a"] = callback

        await broker._dispatch("events:a", "payload")
        assert broker.get_error_counts() == {"callback/events:a": 1}
