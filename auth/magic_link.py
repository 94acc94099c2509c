"""Magic link issuance and single-use redemption.

Token lifecycle: issued -> redeemed | expired | superseded (lost a race).
Redemption is find-then-conditional-update. The UPDATE re-checks the
"unused and unexpired" precondition at write time, so when two requests
race on one token both may read the row but only one UPDATE matches it.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from auth.config import AuthConfig
from auth.crypto import TokenHasher
from auth.database import AuthDatabase
from auth.types import IssuedToken
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class MagicLinkService:
    """Issues and redeems single-use login tokens."""

    def __init__(self, auth_db: AuthDatabase, hasher: TokenHasher, config: AuthConfig):
        self._auth_db = auth_db
        self._hasher = hasher
        self._config = config

    def issue(self, user_id: UUID) -> IssuedToken:
        """Create a token for user_id.

        Only the digest is stored. The returned plaintext is the one and
        only copy and goes straight into the emailed link.
        """
        token = self._hasher.generate_token(self._config.token_bytes)
        expires_at = now_utc() + timedelta(minutes=self._config.magic_link_expiry_minutes)

        stored = self._auth_db.store_auth_token(user_id, self._hasher.hash(token), expires_at)
        logger.info(f"Magic link issued for user {user_id}, token id {stored.id}")

        return IssuedToken(token=token, expires_at=stored.expires_at)

    def redeem(self, token: str) -> UUID | None:
        """Consume token and return its owner, or None.

        None covers unknown, expired, already used and lost-race tokens
        alike. The specific cause is only logged.
        """
        user_id, _ = self.redeem_with_reason(token)
        return user_id

    def redeem_with_reason(self, token: str) -> tuple[UUID | None, str | None]:
        """Like redeem, but also return the rejection cause for the audit trail.

        Returns:
            (user_id, None) on success, (None, reason) otherwise, where reason
            is one of "unknown", "already_used", "expired", "race_lost".
        """
        token_hash = self._hasher.hash(token)
        now = now_utc()

        auth_token = self._auth_db.find_redeemable_token(token_hash, now)
        if auth_token is None:
            reason = self._classify_rejection(token_hash, now)
            logger.warning(f"Magic link rejected: {reason}")
            return None, reason

        if not self._auth_db.mark_token_used(auth_token.id, now):
            logger.warning(f"Magic link {auth_token.id} rejected: race_lost")
            return None, "race_lost"

        logger.info(f"Magic link {auth_token.id} redeemed by user {auth_token.user_id}")
        return auth_token.user_id, None

    def _classify_rejection(self, token_hash: str, now: datetime) -> str:
        auth_token = self._auth_db.get_token_by_hash(token_hash)
        if auth_token is None:
            return "unknown"
        if auth_token.used_at is not None:
            return "already_used"
        if now >= auth_token.expires_at:
            return "expired"
        # Consumed or expired between the two reads
        return "race_lost"
