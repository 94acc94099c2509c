"""Security event logging for the auth audit trail.

Append-only log to the security_events table. Events record the specific
cause of a rejected credential even though end users only ever see a
generic "invalid or expired" message. Plaintext tokens are never recorded.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    MAGIC_LINK_ISSUED = "magic_link_issued"
    MAGIC_LINK_THROTTLED = "magic_link_throttled"
    MAGIC_LINK_REDEEMED = "magic_link_redeemed"
    MAGIC_LINK_REJECTED = "magic_link_rejected"
    LOGIN_UNKNOWN_EMAIL = "login_unknown_email"
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        logger.info(f"Security event {event.value} user_id={user_id}")
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters, newest first."""
        conditions = []
        params = []

        if email:
            conditions.append("email = %s")
            params.append(email)

        if user_id:
            conditions.append("user_id = %s")
            params.append(str(user_id))

        if event_type:
            conditions.append("event_type = %s")
            params.append(event_type.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return self._db.execute(
            f"""SELECT id, event_type, email, user_id, ip_address, user_agent, details, created_at
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            tuple(params),
        )
