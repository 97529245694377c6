"""Protocol interfaces (ports) for the user services.

Every module boundary is defined here as a Protocol class.  Each process
binds exactly one adapter per port at startup, through constructor
injection in ``usersync.main``; nothing looks adapters up globally.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from .events import BaseEvent
from .models import User, UserProjection

# Async callback invoked with ``(channel, raw_message)`` by a broker.
MessageCallback = Callable[[str, str], Awaitable[None]]

# Async handler invoked with a deserialised event by a subscriber.
EventHandler = Callable[[BaseEvent], Awaitable[None]]


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

@runtime_checkable
class IUserRepository(Protocol):
    """Identity store: authoritative user records."""

    async def find_by_id(self, entity_id: str) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def save(self, entity: User) -> User: ...

    async def update(self, entity_id: str, fields: dict[str, Any]) -> User: ...

    async def list_all(self) -> list[User]: ...


@runtime_checkable
class IProjectionRepository(Protocol):
    """Profile store: derived user projections."""

    async def find_by_id(self, entity_id: str) -> UserProjection | None: ...

    async def find_by_email(self, email: str) -> UserProjection | None: ...

    async def save(self, entity: UserProjection) -> UserProjection: ...

    async def update(
        self, entity_id: str, fields: dict[str, Any],
    ) -> UserProjection: ...

    async def list_all(self) -> list[UserProjection]: ...


# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------

@runtime_checkable
class IMessageBroker(Protocol):
    """Channel-based message transport shared by publisher and subscriber.

    Implementations raise ``TransportFailure`` when the broker cannot be
    reached.  Messages are delivered only to callbacks subscribed at
    publish time; nothing is buffered for late subscribers.
    """

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def publish(self, channel: str, message: str) -> int: ...

    async def subscribe(self, channel: str, callback: MessageCallback) -> None: ...

    async def unsubscribe(self, channel: str) -> None: ...


@runtime_checkable
class IEventPublisher(Protocol):
    """Best-effort, at-most-once event publication.

    ``publish`` never raises for transport problems; it returns ``False``.
    """

    async def publish(self, event: BaseEvent) -> bool: ...


@runtime_checkable
class IEventSubscriber(Protocol):
    """Routes inbound events to exactly one handler per event name."""

    async def subscribe(self, event_name: str, handler: EventHandler) -> None: ...
