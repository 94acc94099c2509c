"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class ConfigurationError(AuthError):
    """
    A required secret or setting is missing.

    Fatal: raised at startup or first use, never bypassed.
    """


class InvalidTokenError(AuthError):
    """
    Magic link token is unknown, expired, already used, or lost a redemption race.

    Callers must present every variant identically ("invalid or expired").
    """


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class SessionExpiredError(AuthError):
    """Session is unknown, revoked, or past its expiry. User must log in again."""
