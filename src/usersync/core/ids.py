"""Canonical ID, token and timestamp factories.

All modules import from here instead of defining local ``_uuid()``/``_now()``
copies.

Timestamp Rule
--------------
All timestamps are ``datetime`` with ``tzinfo=timezone.utc``, never naive.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a new UUID v4 string.  Use for all entity and event IDs."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def new_token(nbytes: int = 32) -> str:
    """Generate an opaque URL-safe session token.

    The token is random, not signed: possession is the only proof it
    carries, and it means nothing outside the process that issued it.
    """
    return secrets.token_urlsafe(nbytes)


def normalize_email(email: str) -> str:
    """Canonical form used for uniqueness checks and lookups."""
    return email.strip().lower()
