"""Credential hashing with bcrypt.

Hashing is CPU-bound and deliberately slow, so both operations run in a
worker thread to keep the event loop responsive.  The plaintext and the
hash never leave the identity service.
"""

from __future__ import annotations

import asyncio

import bcrypt

# bcrypt only looks at the first 72 bytes; longer secrets are rejected
# rather than silently truncated.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash_sync(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")

    def verify_sync(self, password: str, password_hash: str) -> bool:
        raw = password.encode("utf-8")
        if len(raw) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, password_hash.encode("ascii"))
        except ValueError:
            # Malformed stored hash.
            return False

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(self.hash_sync, password)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.verify_sync, password, password_hash)
