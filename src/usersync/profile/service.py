"""Profile service: maintains the user projection.

Reads and writes only its own store.  A projection row is created in one
place, :meth:`ProfileService.handle_user_registered`, when a
``user.registered`` event arrives.  There is no pull from the identity
service and no backfill, so a user whose event was lost stays invisible
here even though the identity record exists.
"""

from __future__ import annotations

import logging
from typing import Any

from usersync.core.errors import NotFoundError, ValidationFailed
from usersync.core.events import BaseEvent, UserRegistered, UserVerified
from usersync.core.ids import normalize_email
from usersync.core.interfaces import IEventSubscriber, IProjectionRepository
from usersync.core.models import UserProjection

logger = logging.getLogger(__name__)

# Fields a client may change through the profile API.
UPDATABLE_FIELDS = frozenset({"name", "email"})


class ProfileService:
    def __init__(self, repository: IProjectionRepository) -> None:
        self._repository = repository

    async def bind(self, subscriber: IEventSubscriber) -> None:
        """Register this service's event handlers on *subscriber*."""
        await subscriber.subscribe(UserRegistered.event_name, self.handle_user_registered)
        await subscriber.subscribe(UserVerified.event_name, self.handle_user_verified)

    # ------------------------------------------------------------------
    # Queries / commands
    # ------------------------------------------------------------------

    async def get_by_id(self, user_id: str) -> UserProjection:
        projection = await self._repository.find_by_id(user_id)
        if projection is None:
            raise NotFoundError("User not found")
        return projection

    async def get_all(self) -> list[UserProjection]:
        return await self._repository.list_all()

    async def update(self, user_id: str, fields: dict[str, Any]) -> UserProjection:
        """Apply a client edit to the local projection only.

        Raises:
            NotFoundError: no local projection, whatever the identity
                service holds for *user_id*.
            ValidationFailed: a field outside ``UPDATABLE_FIELDS``, an empty
                update, a blank name or a malformed email.
        """
        if await self._repository.find_by_id(user_id) is None:
            raise NotFoundError("User not found")

        rejected = set(fields) - UPDATABLE_FIELDS
        if rejected:
            raise ValidationFailed(
                f"Fields cannot be updated: {', '.join(sorted(rejected))}"
            )
        if not fields:
            raise ValidationFailed("No fields to update")

        changes = dict(fields)
        if "name" in changes:
            name = changes["name"]
            if not isinstance(name, str) or not name.strip():
                raise ValidationFailed("Name is required")
            changes["name"] = name.strip()
        if "email" in changes:
            email = changes["email"]
            if not isinstance(email, str):
                raise ValidationFailed("A valid email is required")
            email = normalize_email(email)
            local, _, domain = email.partition("@")
            if not local or not domain:
                raise ValidationFailed("A valid email is required")
            changes["email"] = email
        return await self._repository.update(user_id, changes)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_user_registered(self, event: BaseEvent) -> None:
        """Create the projection for a newly registered user.

        A repeated delivery for an id that already has a row leaves the
        row as it is, so local edits are not overwritten.
        """
        if not isinstance(event, UserRegistered):
            raise TypeError(f"Expected UserRegistered, got {type(event).__name__}")
        if await self._repository.find_by_id(event.id) is not None:
            logger.info("Projection %s already exists, ignoring duplicate", event.id)
            return

        await self._repository.save(
            UserProjection(
                id=event.id,
                email=event.email,
                name=event.name,
                verified=False,
            )
        )
        logger.info("Created projection %s", event.id)

    async def handle_user_verified(self, event: BaseEvent) -> None:
        """Flip ``verified`` on an existing projection.

        Without a prior ``user.registered`` there is nothing to update and
        the event is dropped.
        """
        if not isinstance(event, UserVerified):
            raise TypeError(f"Expected UserVerified, got {type(event).__name__}")
        if await self._repository.find_by_id(event.id) is None:
            logger.warning("No projection for verified user %s, dropping event", event.id)
            return
        await self._repository.update(event.id, {"verified": True})
        logger.info("Marked projection %s verified", event.id)
