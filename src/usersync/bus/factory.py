"""Event bus factory.

Creates the broker bound to the publisher/subscriber ports from settings.
"""

from __future__ import annotations

from usersync.core.config import BusConfig
from usersync.core.enums import BusBackend

from .memory_broker import MemoryBroker
from .redis_pubsub import RedisPubSubBroker


def create_broker(config: BusConfig) -> MemoryBroker | RedisPubSubBroker:
    """Create a broker for the configured backend.

    - MEMORY: MemoryBroker (no external deps, single process only)
    - REDIS: RedisPubSubBroker (shared between service processes)
    """
    if config.backend == BusBackend.MEMORY:
        return MemoryBroker()
    return RedisPubSubBroker(
        redis_url=config.redis_url,
        socket_timeout=config.socket_timeout,
    )
