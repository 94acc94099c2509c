"""Authentication service - orchestrates the magic link login flow."""

import logging
from uuid import UUID

import psycopg2

from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.email import is_valid_email, normalize_email
from auth.magic_link import MagicLinkService
from auth.session import SessionManager
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.types import AuthenticatedUser, IssuedToken, MagicLinkDispatch, Session, User
from auth.exceptions import InvalidTokenError, RateLimitedError, SessionExpiredError

logger = logging.getLogger(__name__)


class AuthService:
    """Orchestrates magic link authentication flow.

    Handles:
    - Login link requests (with enumeration protection)
    - Token redemption and session creation
    - Session validation and logout

    Email delivery and cookie transport belong to the caller.
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        magic_links: MagicLinkService,
        session_manager: SessionManager,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._magic_links = magic_links
        self._session_manager = session_manager
        self._rate_limiter = rate_limiter
        self._security_logger = security_logger

    def _audit(self, event: SecurityEvent, **fields) -> None:
        """Append to the security log without failing the login flow.

        By the time most events are written the token is already consumed
        or the session created. A lost audit row is logged, not raised.
        """
        try:
            self._security_logger.log(event, **fields)
        except psycopg2.Error as e:
            logger.error(f"Security event {event.value} not recorded: {e}")

    # Core operations

    def issue_magic_link(self, user_id: UUID) -> IssuedToken:
        return self._magic_links.issue(user_id)

    def redeem_magic_link(self, token: str) -> UUID | None:
        return self._magic_links.redeem(token)

    def create_session(self, user_id: UUID) -> Session:
        return self._session_manager.create_session(user_id)

    def validate_session(self, token: str) -> Session:
        """Validate session token.

        Raises:
            SessionExpiredError: If session unknown, revoked or expired.
        """
        return self._session_manager.validate_session(token)

    def revoke_session(self, token: str) -> None:
        self._session_manager.revoke_session(token)

    # Login flow

    def request_login(
        self,
        email: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> MagicLinkDispatch | None:
        """Issue a login link for an existing user.

        Flow:
        1. Normalize and validate email
        2. Look up user (login never creates users)
        3. Enforce per-user cooldown
        4. Issue token and build the callback URL

        Returns:
            MagicLinkDispatch for the email collaborator, or None when
            nothing should be sent (invalid email, unknown user, cooldown).
            Callers must respond identically in every case.
        """
        email = normalize_email(email)
        if not is_valid_email(email):
            logger.info("Login link requested with malformed email")
            return None

        user = self._auth_db.get_user_by_email(email)
        if user is None:
            self._audit(
                SecurityEvent.LOGIN_UNKNOWN_EMAIL,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return None

        try:
            self._rate_limiter.check_magic_link_cooldown(user.id)
        except RateLimitedError as e:
            self._audit(
                SecurityEvent.MAGIC_LINK_THROTTLED,
                email=user.email,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"retry_after_seconds": e.retry_after_seconds},
            )
            return None

        try:
            issued = self._magic_links.issue(user.id)
        except Exception:
            # No link was stored, so the cooldown must not hold
            self._rate_limiter.reset(user.id)
            raise

        self._audit(
            SecurityEvent.MAGIC_LINK_ISSUED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return MagicLinkDispatch(
            email=user.email,
            url=self._config.magic_link_url(issued.token),
            expires_at=issued.expires_at,
        )

    def complete_login(
        self,
        token: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthenticatedUser:
        """Redeem magic link token and create session.

        Raises:
            InvalidTokenError: For every failure kind (unknown, expired,
                already used, lost race, owner missing).
        """
        if not token:
            raise InvalidTokenError("Invalid or expired token")

        user_id, reason = self._magic_links.redeem_with_reason(token)
        if user_id is None:
            self._audit(
                SecurityEvent.MAGIC_LINK_REJECTED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": reason},
            )
            raise InvalidTokenError("Invalid or expired token")

        self._auth_db.update_last_login(user_id)
        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            logger.error(f"Redeemed magic link belongs to missing user {user_id}")
            raise InvalidTokenError("Invalid or expired token")

        session = self._session_manager.create_session(user.id)
        self._rate_limiter.reset(user.id)

        self._audit(
            SecurityEvent.MAGIC_LINK_REDEEMED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._audit(
            SecurityEvent.SESSION_CREATED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return AuthenticatedUser(user=user, session=session)

    def logout(self, session_token: str, ip_address: str | None = None) -> None:
        """Revoke session (logout).

        Safe to call with invalid token.
        """
        try:
            user_id = self._session_manager.validate_session(session_token).user_id
        except SessionExpiredError:
            user_id = None

        self._session_manager.revoke_session(session_token)

        self._audit(
            SecurityEvent.SESSION_REVOKED,
            user_id=user_id,
            ip_address=ip_address,
        )

    def get_current_user(self, session_token: str) -> User:
        """Resolve the user behind a session token.

        Raises:
            SessionExpiredError: If the session is invalid or its user is gone.
        """
        session = self._session_manager.validate_session(session_token)
        user = self._auth_db.get_user_by_id(session.user_id)
        if user is None:
            raise SessionExpiredError("Session user no longer exists")
        return user
