"""Event bus: channel brokers and the publisher/subscriber port adapters."""

from usersync.bus.adapters import DeadLetter, EventPublisher, EventSubscriber
from usersync.bus.factory import create_broker
from usersync.bus.memory_broker import MemoryBroker
from usersync.bus.redis_pubsub import RedisPubSubBroker

__all__ = [
    "DeadLetter",
    "EventPublisher",
    "EventSubscriber",
    "MemoryBroker",
    "RedisPubSubBroker",
    "create_broker",
]
