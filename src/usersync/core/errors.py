"""Custom exception hierarchy for the user services."""


class UserSyncError(Exception):
    """Base exception for all usersync errors."""


# --- Configuration ---
class ConfigError(UserSyncError):
    """Invalid or missing configuration."""


# --- Domain ---
class DomainError(UserSyncError):
    """Error surfaced to HTTP clients with a status code."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConflictError(DomainError):
    """Duplicate unique key on write (e.g. email already registered)."""

    status_code = 409


class NotFoundError(DomainError):
    """Missing entity on read or update."""

    status_code = 404


class UnauthorizedError(DomainError):
    """Failed credential check or business-rule gate."""

    status_code = 401


class ValidationFailed(DomainError):
    """Input rejected before reaching the store."""

    status_code = 400


# --- Transport ---
class TransportFailure(UserSyncError):
    """Message bus unreachable or a bus operation failed."""


class UnknownEventError(TransportFailure):
    """No event schema registered for the given event name."""
