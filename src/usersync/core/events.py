"""Domain event schemas.

All events inherit from ``BaseEvent`` and are frozen Pydantic models.
``event_name`` is the routing key; the bus maps it to the channel
``events:<event_name>``.  There is no schema version field: changing a
payload shape is a breaking change for every subscriber.
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from .ids import new_id, utc_now


class BaseEvent(BaseModel):
    """Base for all events. Provides identity, time, and tracing."""

    model_config = ConfigDict(frozen=True)

    event_name: ClassVar[str] = ""

    event_id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utc_now)
    trace_id: str = Field(default_factory=new_id)
    source: str = ""


# ===========================================================================
# Identity lifecycle
# ===========================================================================

class UserRegistered(BaseEvent):
    event_name: ClassVar[str] = "user.registered"

    source: str = "identity"
    id: str
    email: str
    name: str


class UserVerified(BaseEvent):
    event_name: ClassVar[str] = "user.verified"

    source: str = "identity"
    id: str
    email: str
