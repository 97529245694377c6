"""Entity models owned by each service.

``User`` lives only inside the identity service; ``PublicUser`` is the view
that crosses its boundary.  ``UserProjection`` is the profile service's own
derived copy, referencing the identity ``id`` without owning it.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .ids import new_id, utc_now


class _WireModel(BaseModel):
    """Models serialised to HTTP clients with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Identity-owned
# ---------------------------------------------------------------------------

class User(BaseModel):
    """Authoritative user record.  Never serialised as-is to a client."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    email: str
    name: str
    password_hash: str = Field(repr=False)
    verified: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_public(self) -> PublicUser:
        return PublicUser(
            id=self.id,
            email=self.email,
            name=self.name,
            verified=self.verified,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class PublicUser(_WireModel):
    """``User`` minus the credential hash."""

    id: str
    email: str
    name: str
    verified: bool = False
    created_at: datetime
    updated_at: datetime


class AuthResult(_WireModel):
    """Returned by register and login."""

    user: PublicUser
    access_token: str


# ---------------------------------------------------------------------------
# Profile-owned
# ---------------------------------------------------------------------------

class UserProjection(_WireModel):
    """Profile service's copy of a user.

    May be stale relative to, or absent from, the identity store at any
    instant.  Created only from a ``user.registered`` event.
    """

    id: str
    email: str
    name: str
    verified: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
