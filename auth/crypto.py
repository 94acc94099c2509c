"""Secret-derived hashing and random token generation.

Magic link tokens and session tokens are stored only as
HMAC-SHA256(secret, token). A leaked digest table cannot be reversed or
replayed without the secret, and rotating the secret invalidates every
outstanding token at once.
"""

import hashlib
import hmac
import logging
import secrets

from auth.config import MIN_TOKEN_BYTES
from auth.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TokenHasher:
    """Peppered one-way hashing plus URL-safe token generation."""

    def __init__(self, secret: str | None, require_secret: bool = True):
        """
        Args:
            secret: Server-held pepper (AUTH secret from Vault)
            require_secret: Raise instead of running unpeppered

        Raises:
            ConfigurationError: If secret is empty and required
        """
        if not secret:
            if require_secret:
                raise ConfigurationError("Auth secret is required for token hashing")
            logger.warning("Auth secret not set - token digests are NOT peppered")
        self._key = (secret or "").encode("utf-8")

    @staticmethod
    def generate_token(byte_length: int = MIN_TOKEN_BYTES) -> str:
        """Random token, base64url encoded (safe in URLs and cookies)."""
        if byte_length < MIN_TOKEN_BYTES:
            raise ValueError(
                f"Tokens need at least {MIN_TOKEN_BYTES} random bytes, got {byte_length}"
            )
        return secrets.token_urlsafe(byte_length)

    def hash(self, plaintext: str) -> str:
        """64-char hex digest. Same plaintext and secret always give the same digest."""
        return hmac.new(self._key, plaintext.encode("utf-8"), hashlib.sha256).hexdigest()
