"""In-memory repository adapter.

Implements both repository ports with a dict keyed by entity id.

Not safe for concurrent mutation from several threads: each service runs a
single asyncio event loop and none of these coroutines awaits while a
record is half-written, so interleaved handlers always see whole records.
Nothing survives a process restart.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from usersync.core.errors import NotFoundError, ValidationFailed
from usersync.core.ids import normalize_email, utc_now
from usersync.core.models import User, UserProjection

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class InMemoryRepository(Generic[T]):
    """Mapping-backed store for models carrying ``id`` and ``email``.

    Entities handed in and out are copies, so callers can never mutate
    stored state behind the repository's back.
    """

    def __init__(self, model_type: type[T], name: str = "") -> None:
        self._model_type = model_type
        self._name = name or model_type.__name__
        self._rows: dict[str, T] = {}

    async def find_by_id(self, entity_id: str) -> T | None:
        row = self._rows.get(entity_id)
        return row.model_copy(deep=True) if row is not None else None

    async def find_by_email(self, email: str) -> T | None:
        wanted = normalize_email(email)
        for row in self._rows.values():
            if normalize_email(row.email) == wanted:
                return row.model_copy(deep=True)
        return None

    async def save(self, entity: T) -> T:
        """Insert or replace by ``entity.id``."""
        stored = entity.model_copy(deep=True)
        replaced = entity.id in self._rows
        self._rows[entity.id] = stored
        logger.debug(
            "%s %s id=%s", self._name, "replaced" if replaced else "inserted",
            entity.id,
        )
        return stored.model_copy(deep=True)

    async def update(self, entity_id: str, fields: dict[str, Any]) -> T:
        """Merge *fields* into an existing row.

        Raises:
            NotFoundError: no row with *entity_id*.
            ValidationFailed: unknown, immutable or invalid fields.
        """
        current = self._rows.get(entity_id)
        if current is None:
            raise NotFoundError(f"{self._name} {entity_id} not found")

        unknown = set(fields) - set(self._model_type.model_fields)
        if unknown:
            raise ValidationFailed(f"Unknown fields: {', '.join(sorted(unknown))}")
        frozen = set(fields) & _IMMUTABLE_FIELDS
        if frozen:
            raise ValidationFailed(
                f"Fields cannot be changed: {', '.join(sorted(frozen))}"
            )

        merged = {**current.model_dump(), **fields, "updated_at": utc_now()}
        try:
            updated = self._model_type.model_validate(merged)
        except ValidationError as exc:
            raise ValidationFailed(f"Invalid update: {exc.error_count()} error(s)") from exc

        self._rows[entity_id] = updated
        return updated.model_copy(deep=True)

    async def list_all(self) -> list[T]:
        rows = sorted(self._rows.values(), key=lambda r: r.created_at)
        return [r.model_copy(deep=True) for r in rows]

    def count(self) -> int:
        return len(self._rows)

    def clear(self) -> None:
        """Drop every row. For testing."""
        self._rows.clear()


class InMemoryUserRepository(InMemoryRepository[User]):
    """Identity store."""

    def __init__(self) -> None:
        super().__init__(User, name="User")


class InMemoryProjectionRepository(InMemoryRepository[UserProjection]):
    """Profile store."""

    def __init__(self) -> None:
        super().__init__(UserProjection, name="UserProjection")
