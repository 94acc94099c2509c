"""Database operations for authentication.

Tables: users, auth_tokens.

auth_tokens holds only HMAC digests of magic link tokens. A token row is
consumed by one conditional UPDATE (used_at IS NULL and unexpired at write
time), so concurrent redemptions across processes resolve inside Postgres:
at most one UPDATE returns the row.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from clients.postgres_client import PostgresClient
from auth.types import AuthToken, User
from utils.timezone import now_utc

_USER_COLUMNS = "id, email, plan, is_pro, pro_valid_until, created_at, last_login_at"
_TOKEN_COLUMNS = "id, user_id, token_hash, created_at, expires_at, used_at"


def _as_uuid(value: Any) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def _user_from_row(row: dict) -> User:
    return User(
        id=_as_uuid(row["id"]),
        email=row["email"],
        plan=row["plan"],
        is_pro=row["is_pro"],
        pro_valid_until=row["pro_valid_until"],
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


def _token_from_row(row: dict) -> AuthToken:
    return AuthToken(
        id=_as_uuid(row["id"]),
        user_id=_as_uuid(row["user_id"]),
        token_hash=row["token_hash"],
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        used_at=row["used_at"],
    )


class AuthDatabase:
    """Database operations for authentication."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        return _user_from_row(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return _user_from_row(row) if row else None

    def create_user(self, email: str) -> User:
        """Create new user with email (lowercased). Used by registration, never by login."""
        rows = self._db.execute_returning(
            f"""INSERT INTO users (email)
               VALUES (lower(%s))
               RETURNING {_USER_COLUMNS}""",
            (email,),
        )
        return _user_from_row(rows[0])

    def get_or_create_user(self, email: str) -> tuple[User, bool]:
        """Get existing or create new user.

        Returns:
            Tuple of (user, was_created)
        """
        existing = self.get_user_by_email(email)
        if existing:
            return existing, False
        return self.create_user(email), True

    def update_last_login(self, user_id: UUID, at: datetime | None = None) -> None:
        """Update last_login_at (defaults to now)."""
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (at or now_utc(), user_id),
        )

    def store_auth_token(self, user_id: UUID, token_hash: str, expires_at: datetime) -> AuthToken:
        """Insert a new unused token digest. id and created_at are server-assigned."""
        rows = self._db.execute_returning(
            f"""INSERT INTO auth_tokens (user_id, token_hash, expires_at)
               VALUES (%s, %s, %s)
               RETURNING {_TOKEN_COLUMNS}""",
            (user_id, token_hash, expires_at),
        )
        return _token_from_row(rows[0])

    def find_redeemable_token(self, token_hash: str, now: datetime) -> AuthToken | None:
        """Unused, unexpired token with this digest, or None."""
        row = self._db.execute_single(
            f"""SELECT {_TOKEN_COLUMNS}
               FROM auth_tokens
               WHERE token_hash = %s AND used_at IS NULL AND expires_at > %s""",
            (token_hash, now),
        )
        return _token_from_row(row) if row else None

    def get_token_by_hash(self, token_hash: str) -> AuthToken | None:
        """Token with this digest regardless of state (rejection diagnostics)."""
        row = self._db.execute_single(
            f"SELECT {_TOKEN_COLUMNS} FROM auth_tokens WHERE token_hash = %s",
            (token_hash,),
        )
        return _token_from_row(row) if row else None

    def mark_token_used(self, token_id: UUID, used_at: datetime) -> bool:
        """Consume the token if it is still unused and unexpired at write time.

        Returns:
            True if this call consumed it, False if the precondition no longer held.
        """
        rows = self._db.execute_returning(
            """UPDATE auth_tokens
               SET used_at = %s
               WHERE id = %s AND used_at IS NULL AND expires_at > %s
               RETURNING id""",
            (used_at, token_id, used_at),
        )
        return len(rows) == 1
