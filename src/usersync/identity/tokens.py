"""Opaque session tokens.

Tokens are random strings mapped to a user id in process memory.  They are
not JWTs and carry no signature: they cannot be verified by another
process and vanish on restart.
"""

from __future__ import annotations

import logging

from usersync.core.ids import new_token

logger = logging.getLogger(__name__)


class SessionTokens:
    """Issues, resolves and revokes access tokens for one identity process."""

    def __init__(self, nbytes: int = 32) -> None:
        self._nbytes = nbytes
        # token → user id
        self._sessions: dict[str, str] = {}

    def issue(self, user_id: str) -> str:
        token = new_token(self._nbytes)
        self._sessions[token] = user_id
        return token

    def resolve(self, token: str) -> str | None:
        return self._sessions.get(token)

    def revoke(self, token: str) -> bool:
        """Forget *token*.  Returns ``False`` if it was not active."""
        return self._sessions.pop(token, None) is not None

    def revoke_user(self, user_id: str) -> int:
        """Forget every token issued to *user_id*; returns how many."""
        stale = [t for t, uid in self._sessions.items() if uid == user_id]
        for token in stale:
            del self._sessions[token]
        if stale:
            logger.info("Revoked %d session(s) for user %s", len(stale), user_id)
        return len(stale)

    def active_count(self) -> int:
        return len(self._sessions)
