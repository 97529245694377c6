"""Identity service orchestration.

Owns the authoritative user record and its lifecycle::

    Unregistered ──register──▶ Registered(unverified) ──verify──▶ Registered(verified)

Depends only on the repository port and the publisher port.  A successful
write to the identity store is what makes an operation succeed; the event
that follows is best-effort and its loss is never reported to the caller.
"""

from __future__ import annotations

import logging

from usersync.core.errors import ConflictError, UnauthorizedError, ValidationFailed
from usersync.core.events import UserRegistered, UserVerified
from usersync.core.ids import normalize_email
from usersync.core.interfaces import IEventPublisher, IUserRepository
from usersync.core.models import AuthResult, PublicUser, User
from usersync.observability import metrics
from usersync.observability.logger import get_trace_id

from .passwords import MAX_PASSWORD_BYTES, PasswordHasher
from .tokens import SessionTokens

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid credentials"


class IdentityService:
    """Registration, login, verification and session handling."""

    def __init__(
        self,
        repository: IUserRepository,
        publisher: IEventPublisher,
        hasher: PasswordHasher | None = None,
        tokens: SessionTokens | None = None,
        min_password_length: int = 6,
    ) -> None:
        self._repository = repository
        self._publisher = publisher
        self._hasher = hasher or PasswordHasher()
        self._tokens = tokens or SessionTokens()
        self._min_password_length = min_password_length

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def register(self, email: str, name: str, password: str) -> AuthResult:
        """Create an unverified user and announce it.

        Raises:
            ValidationFailed: malformed email, empty name or weak password.
            ConflictError: the email is already registered.  No event is
                published in that case.
        """
        email = normalize_email(email)
        name = name.strip()
        self._validate_registration(email, name, password)

        if await self._repository.find_by_email(email) is not None:
            metrics.record_registration("conflict")
            raise ConflictError("User with this email already exists")

        password_hash = await self._hasher.hash(password)

        # Hashing yielded to the loop; another registration may have won.
        if await self._repository.find_by_email(email) is not None:
            metrics.record_registration("conflict")
            raise ConflictError("User with this email already exists")

        user = await self._repository.save(
            User(email=email, name=name, password_hash=password_hash)
        )
        metrics.record_registration("created")
        logger.info("Registered user %s", user.id)

        await self._publisher.publish(
            UserRegistered(
                id=user.id,
                email=user.email,
                name=user.name,
                trace_id=get_trace_id(),
            )
        )
        return AuthResult(user=user.to_public(), access_token=self._tokens.issue(user.id))

    async def login(self, email: str, password: str) -> AuthResult:
        """Exchange credentials for a session token.

        Raises:
            UnauthorizedError: unknown email, wrong password, or the email
                has not been verified yet.
        """
        user = await self._repository.find_by_email(email)
        if user is None or not await self._hasher.verify(password, user.password_hash):
            metrics.record_login("invalid_credentials")
            raise UnauthorizedError(_INVALID_CREDENTIALS)
        if not user.verified:
            metrics.record_login("unverified")
            raise UnauthorizedError("Email not verified")

        metrics.record_login("ok")
        return AuthResult(user=user.to_public(), access_token=self._tokens.issue(user.id))

    async def verify_email(self, user_id: str) -> PublicUser:
        """Mark the user's email as verified.

        The first transition publishes ``user.verified``; verifying an
        already verified user changes nothing and publishes nothing.

        Raises:
            UnauthorizedError: no such user.
        """
        user = await self._repository.find_by_id(user_id)
        if user is None:
            raise UnauthorizedError("User not found")
        if user.verified:
            return user.to_public()

        user = await self._repository.update(user_id, {"verified": True})
        logger.info("Verified user %s", user.id)

        await self._publisher.publish(
            UserVerified(id=user.id, email=user.email, trace_id=get_trace_id())
        )
        return user.to_public()

    async def change_password(
        self, user_id: str, current_password: str, new_password: str,
    ) -> PublicUser:
        """Replace the credential hash and end every open session.

        Raises:
            UnauthorizedError: no such user or *current_password* is wrong.
            ValidationFailed: *new_password* is too weak.
        """
        user = await self._repository.find_by_id(user_id)
        if user is None or not await self._hasher.verify(
            current_password, user.password_hash,
        ):
            raise UnauthorizedError(_INVALID_CREDENTIALS)
        self._validate_password(new_password)

        password_hash = await self._hasher.hash(new_password)
        user = await self._repository.update(user_id, {"password_hash": password_hash})
        self._tokens.revoke_user(user_id)
        return user.to_public()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def authenticate(self, token: str) -> PublicUser:
        """Resolve an access token to its user.

        Raises:
            UnauthorizedError: unknown or revoked token, or the user is gone.
        """
        user_id = self._tokens.resolve(token)
        if user_id is None:
            raise UnauthorizedError("Invalid or expired token")
        user = await self._repository.find_by_id(user_id)
        if user is None:
            self._tokens.revoke(token)
            raise UnauthorizedError("Invalid or expired token")
        return user.to_public()

    def logout(self, token: str) -> bool:
        return self._tokens.revoke(token)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_registration(self, email: str, name: str, password: str) -> None:
        local, _, domain = email.partition("@")
        if not local or not domain:
            raise ValidationFailed("A valid email is required")
        if not name:
            raise ValidationFailed("Name is required")
        self._validate_password(password)

    def _validate_password(self, password: str) -> None:
        if len(password) < self._min_password_length:
            raise ValidationFailed(
                f"Password must be at least {self._min_password_length} characters long"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationFailed(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
            )
