"""Session token lifecycle management.

Sessions are stored in Valkey under the HMAC digest of the bearer token,
with a key TTL matching session expiry. The plaintext token only ever lives
in the client's cookie, so a dump of the store cannot be replayed.
Absence of the key means revoked or expired.
"""

import logging
from datetime import timedelta
from uuid import UUID

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.crypto import TokenHasher
from auth.types import Session
from auth.exceptions import SessionExpiredError
from utils.timezone import now_utc, parse_iso

logger = logging.getLogger(__name__)


class SessionManager:
    """Session token lifecycle management.

    Expiry is fixed at creation. Validation never extends it.
    """

    KEY_PREFIX = "session:"

    def __init__(self, valkey: ValkeyClient, hasher: TokenHasher, config: AuthConfig):
        self._valkey = valkey
        self._hasher = hasher
        self._config = config

    def _key(self, token: str) -> str:
        """Valkey key for a session token (digest, never the plaintext)."""
        return f"{self.KEY_PREFIX}{self._hasher.hash(token)}"

    def create_session(self, user_id: UUID) -> Session:
        """Create new session for user.

        Returns the session including the plaintext token for the client.
        """
        token = self._hasher.generate_token(self._config.token_bytes)
        now = now_utc()
        expires_at = now + timedelta(days=self._config.session_expiry_days)

        self._valkey.set_json(
            self._key(token),
            {
                "user_id": str(user_id),
                "created_at": now.isoformat(),
                "expires_at": expires_at.isoformat(),
            },
            expire_seconds=self._config.session_expiry_seconds,
        )
        logger.info(f"Session created for user {user_id}")

        return Session(
            token=token,
            user_id=user_id,
            created_at=now,
            expires_at=expires_at,
        )

    def validate_session(self, token: str) -> Session:
        """Validate session token and return session.

        Raises:
            SessionExpiredError: If token unknown, revoked, or expired.
        """
        key = self._key(token)
        data = self._valkey.get_json(key)

        if data is None:
            raise SessionExpiredError("Session not found or expired")

        session = Session(
            token=token,
            user_id=UUID(data["user_id"]),
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
        )

        # Valkey TTL normally removes the key first
        if now_utc() >= session.expires_at:
            self._valkey.delete(key)
            raise SessionExpiredError("Session expired")

        return session

    def revoke_session(self, token: str) -> None:
        """Revoke session (logout).

        Safe to call with an unknown or already revoked token.
        """
        if self._valkey.delete(self._key(token)):
            logger.info("Session revoked")
