"""Event name → schema registry and channel naming.

Maps routing names (``user.registered``) to their Pydantic event models.
Used for serialization/deserialization on both sides of the bus.
"""

from __future__ import annotations

from usersync.core.errors import UnknownEventError
from usersync.core.events import BaseEvent, UserRegistered, UserVerified

DEFAULT_CHANNEL_PREFIX = "events:"

EVENT_SCHEMAS: dict[str, type[BaseEvent]] = {
    cls.event_name: cls for cls in (UserRegistered, UserVerified)
}


def get_event_class(event_name: str) -> type[BaseEvent] | None:
    """Look up event class by routing name."""
    return EVENT_SCHEMAS.get(event_name)


def require_event_class(event_name: str) -> type[BaseEvent]:
    cls = EVENT_SCHEMAS.get(event_name)
    if cls is None:
        raise UnknownEventError(f"Unknown event type: {event_name}")
    return cls


def channel_for(event_name: str, prefix: str = DEFAULT_CHANNEL_PREFIX) -> str:
    """``user.registered`` → ``events:user.registered``."""
    return f"{prefix}{event_name}"


def event_name_for(channel: str, prefix: str = DEFAULT_CHANNEL_PREFIX) -> str | None:
    """Inverse of :func:`channel_for`; ``None`` for foreign channels."""
    if not channel.startswith(prefix):
        return None
    return channel[len(prefix):]


def serialize(event: BaseEvent) -> str:
    return event.model_dump_json()


def deserialize(event_name: str, raw: str | bytes) -> BaseEvent:
    """Parse a wire payload into its event model.

    Raises ``UnknownEventError`` for unregistered names and
    ``pydantic.ValidationError`` for malformed payloads.
    """
    return require_event_class(event_name).model_validate_json(raw)
