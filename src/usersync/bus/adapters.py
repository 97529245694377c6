"""Publisher and subscriber port adapters over a channel broker.

``EventPublisher`` is the write side used by the identity service.  It turns
an event into JSON on ``events:<name>`` and never lets a transport problem
reach its caller: the authoritative store write is the unit of success,
the notification is a best-effort side effect.

``EventSubscriber`` is the read side used by the profile service.  Its
handler table belongs to the instance, so two subscribers (two services
in one test process, say) never see each other's handlers.  A message
that cannot be decoded, or whose handler raises, is logged, counted and
recorded as a dead letter; it is never redelivered.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field

from pydantic import ValidationError

from usersync.core.errors import TransportFailure, UnknownEventError
from usersync.core.events import BaseEvent
from usersync.core.interfaces import EventHandler, IMessageBroker
from usersync.observability import metrics
from usersync.observability.logger import get_trace_id, set_trace_id

from .schemas import (
    DEFAULT_CHANNEL_PREFIX,
    channel_for,
    deserialize,
    event_name_for,
    require_event_class,
    serialize,
)

logger = logging.getLogger(__name__)


@dataclass
class DeadLetter:
    """Record of an inbound message that was dropped."""

    channel: str
    event_name: str
    error: str
    payload: str
    timestamp: float = field(default_factory=time.monotonic)


# ---------------------------------------------------------------------------
# Publish side
# ---------------------------------------------------------------------------

class EventPublisher:
    """At-most-once, fire-and-forget publisher.

    ``publish`` returns ``True`` when the broker accepted the message and
    ``False`` when it could not be reached.  There is no retry and no
    outbox: a ``False`` means the event is gone.
    """

    def __init__(
        self,
        broker: IMessageBroker,
        channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
    ) -> None:
        self._broker = broker
        self._prefix = channel_prefix
        self._published: int = 0
        self._failed: int = 0

    async def publish(self, event: BaseEvent) -> bool:
        name = event.event_name
        channel = channel_for(name, self._prefix)
        try:
            receivers = await self._broker.publish(channel, serialize(event))
        except TransportFailure as exc:
            self._failed += 1
            metrics.record_event_publish_failed(name)
            logger.warning(
                "Dropped event %s id=%s: %s", name, event.event_id, exc,
            )
            return False

        self._published += 1
        metrics.record_event_published(name)
        logger.debug(
            "Published %s id=%s to %d receiver(s)",
            name, event.event_id, receivers,
        )
        return True

    @property
    def published_count(self) -> int:
        return self._published

    @property
    def failed_count(self) -> int:
        return self._failed


# ---------------------------------------------------------------------------
# Subscribe side
# ---------------------------------------------------------------------------

class EventSubscriber:
    """Routes inbound channel messages to one handler per event name."""

    def __init__(
        self,
        broker: IMessageBroker,
        channel_prefix: str = DEFAULT_CHANNEL_PREFIX,
    ) -> None:
        self._broker = broker
        self._prefix = channel_prefix
        # event name → handler
        self._handlers: dict[str, EventHandler] = {}

        # Observability
        self._error_counts: dict[str, int] = defaultdict(int)
        self._dead_letters: list[DeadLetter] = []
        self._messages_processed: int = 0

    async def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register *handler* for *event_name*.

        Subscribing the same name again replaces the previous handler;
        the broker subscription is made only once.

        Raises:
            UnknownEventError: *event_name* has no registered schema.
            TransportFailure: the broker could not be reached.
        """
        require_event_class(event_name)

        if event_name in self._handlers:
            logger.warning("Replacing handler for %s", event_name)
            self._handlers[event_name] = handler
            return

        await self._broker.subscribe(
            channel_for(event_name, self._prefix), self._on_message,
        )
        self._handlers[event_name] = handler

    async def unsubscribe(self, event_name: str) -> None:
        if self._handlers.pop(event_name, None) is not None:
            await self._broker.unsubscribe(channel_for(event_name, self._prefix))

    def handled_event_names(self) -> list[str]:
        return sorted(self._handlers)

    async def _on_message(self, channel: str, raw: str) -> None:
        """Broker callback: decode, dispatch, absorb failures."""
        name = event_name_for(channel, self._prefix)
        handler = self._handlers.get(name) if name else None
        if handler is None:
            logger.debug("No handler for channel=%s", channel)
            return

        try:
            event = deserialize(name, raw)
        except (UnknownEventError, ValidationError) as exc:
            self._absorb(channel, name, raw, exc, reason="decode")
            return

        previous_trace = get_trace_id()
        set_trace_id(event.trace_id)
        try:
            await handler(event)
        except Exception as exc:
            self._absorb(channel, name, raw, exc, reason="handler")
            return
        finally:
            set_trace_id(previous_trace)

        self._messages_processed += 1
        metrics.record_event_handled(name)

    def _absorb(
        self,
        channel: str,
        name: str,
        raw: str,
        exc: Exception,
        reason: str,
    ) -> None:
        self._error_counts[name] += 1
        self._dead_letters.append(
            DeadLetter(channel=channel, event_name=name, error=str(exc), payload=raw)
        )
        metrics.record_event_handler_error(name, reason)
        logger.error(
            "Dropped %s message on %s (%s): %s",
            name, channel, reason, exc,
            exc_info=reason == "handler",
        )

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_error_counts(self) -> dict[str, int]:
        """Return per-event-name error counts."""
        return dict(self._error_counts)

    @property
    def dead_letters(self) -> list[DeadLetter]:
        """Access the dead-letter list (read-only snapshot)."""
        return list(self._dead_letters)

    @property
    def messages_processed(self) -> int:
        """Total messages successfully processed."""
        return self._messages_processed

    def clear_dead_letters(self) -> list[DeadLetter]:
        """Drain the dead-letter list and return all entries."""
        drained = self._dead_letters[:]
        self._dead_letters.clear()
        return drained
