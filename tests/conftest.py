"""Shared test fixtures for the accounts test suite.

Postgres and Valkey are replaced by in-memory doubles with the same method
surface as AuthDatabase and ValkeyClient, so the suite needs no running
infrastructure. The auth-token double enforces the same conditional-write
precondition as the SQL in AuthDatabase.mark_token_used.
"""

import json
import os
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from clients.vault_client import reset_vault_client

reset_vault_client()

from auth.config import AuthConfig
from auth.crypto import TokenHasher
from auth.magic_link import MagicLinkService
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import AuthToken, User
from utils.timezone import now_utc


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "testuser@example.com"

TEST_USER_B_ID = UUID("00000000-0000-0000-0000-000000000002")
TEST_USER_B_EMAIL = "testuser-b@example.com"

TEST_SECRET = "test-pepper-do-not-use-in-production"


# =============================================================================
# IN-MEMORY STORE DOUBLES
# =============================================================================


class FakeValkey:
    """In-memory stand-in for ValkeyClient with real TTL expiry."""

    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and time.monotonic() >= deadline:
            del self._data[key]
            return None
        return value

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        deadline = time.monotonic() + expire_seconds if expire_seconds is not None else None
        with self._lock:
            self._data[key] = (value, deadline)

    def set_if_absent(self, key: str, value: str, expire_seconds: int) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, time.monotonic() + expire_seconds)
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live(key) is not None
            self._data.pop(key, None)
            return existed

    def ttl(self, key: str) -> int:
        with self._lock:
            if self._live(key) is None:
                return -2
            deadline = self._data[key][1]
            if deadline is None:
                return -1
            return int(deadline - time.monotonic())

    def set_json(self, key: str, value: dict | list, expire_seconds: int | None = None) -> None:
        self.set(key, json.dumps(value), expire_seconds)

    def get_json(self, key: str) -> dict | list | None:
        value = self.get(key)
        return None if value is None else json.loads(value)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [k for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None]

    def close(self) -> None:
        pass


class InMemoryAuthStore:
    """In-memory stand-in for AuthDatabase.

    after_find, when set, runs between the redeemable-token read and the
    conditional write. Tests use it to force two redemptions to interleave.
    """

    def __init__(self):
        self.users: dict[UUID, User] = {}
        self.tokens: dict[UUID, AuthToken] = {}
        self.after_find = None
        self._lock = threading.Lock()

    def add_user(self, email: str, user_id: UUID | None = None) -> User:
        user = User(id=user_id or uuid4(), email=email.lower(), created_at=now_utc())
        self.users[user.id] = user
        return user

    def get_user_by_email(self, email: str) -> User | None:
        for user in self.users.values():
            if user.email == email.lower():
                return user
        return None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        return self.users.get(user_id)

    def update_last_login(self, user_id: UUID, at: datetime | None = None) -> None:
        user = self.users.get(user_id)
        if user is not None:
            self.users[user_id] = user.model_copy(update={"last_login_at": at or now_utc()})

    def store_auth_token(self, user_id: UUID, token_hash: str, expires_at: datetime) -> AuthToken:
        token = AuthToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            created_at=now_utc(),
            expires_at=expires_at,
            used_at=None,
        )
        with self._lock:
            self.tokens[token.id] = token
        return token

    def find_redeemable_token(self, token_hash: str, now: datetime) -> AuthToken | None:
        with self._lock:
            found = next(
                (
                    t for t in self.tokens.values()
                    if t.token_hash == token_hash and t.used_at is None and t.expires_at > now
                ),
                None,
            )
        if found is not None and self.after_find is not None:
            self.after_find()
        return found

    def get_token_by_hash(self, token_hash: str) -> AuthToken | None:
        with self._lock:
            return next((t for t in self.tokens.values() if t.token_hash == token_hash), None)

    def mark_token_used(self, token_id: UUID, used_at: datetime) -> bool:
        with self._lock:
            token = self.tokens.get(token_id)
            if token is None or token.used_at is not None or token.expires_at <= used_at:
                return False
            self.tokens[token_id] = token.model_copy(update={"used_at": used_at})
            return True

    def expire_all_tokens(self) -> None:
        """Move every token's expiry into the past."""
        with self._lock:
            for token_id, token in self.tokens.items():
                self.tokens[token_id] = token.model_copy(
                    update={"expires_at": token.created_at - timedelta(minutes=1)}
                )


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_vault():
    """No Vault client or cached secret leaks between tests."""
    reset_vault_client()
    yield
    reset_vault_client()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def test_user_b_id() -> UUID:
    """The secondary test user's ID."""
    return TEST_USER_B_ID


@pytest.fixture
def auth_config():
    """Test config with short lifetimes."""
    return AuthConfig(
        magic_link_expiry_minutes=5,
        session_expiry_days=1,
        app_base_url="https://test.example.com/",
    )


@pytest.fixture
def hasher():
    return TokenHasher(TEST_SECRET)


@pytest.fixture
def valkey():
    return FakeValkey()


@pytest.fixture
def auth_store():
    """Auth store seeded with the two test users."""
    store = InMemoryAuthStore()
    store.add_user(TEST_USER_EMAIL, TEST_USER_ID)
    store.add_user(TEST_USER_B_EMAIL, TEST_USER_B_ID)
    return store


@pytest.fixture
def magic_links(auth_store, hasher, auth_config):
    return MagicLinkService(auth_store, hasher, auth_config)


@pytest.fixture
def session_manager(valkey, hasher, auth_config):
    return SessionManager(valkey, hasher, auth_config)


@pytest.fixture
def rate_limiter(valkey, auth_config):
    return RateLimiter(valkey, auth_config)


@pytest.fixture
def mock_security_logger():
    """Mock security logger - audit rows are asserted, not written."""
    return Mock(spec=SecurityLogger)


@pytest.fixture
def auth_service(auth_config, auth_store, magic_links, session_manager, rate_limiter, mock_security_logger):
    """AuthService over in-memory stores."""
    return AuthService(
        config=auth_config,
        auth_db=auth_store,
        magic_links=magic_links,
        session_manager=session_manager,
        rate_limiter=rate_limiter,
        security_logger=mock_security_logger,
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient against the Vault-configured database."""
    if not os.getenv("VAULT_ADDR"):
        pytest.skip("VAULT_ADDR not set - database integration tests need Vault")

    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url

    client = PostgresClient(get_database_url())
    client.execute(
        """CREATE TABLE IF NOT EXISTS users (
               id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
               email text NOT NULL UNIQUE,
               plan text NOT NULL DEFAULT 'free',
               is_pro boolean NOT NULL DEFAULT false,
               pro_valid_until timestamptz,
               created_at timestamptz NOT NULL DEFAULT now(),
               last_login_at timestamptz
           )"""
    )
    client.execute(
        """CREATE TABLE IF NOT EXISTS auth_tokens (
               id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
               user_id uuid NOT NULL REFERENCES users(id),
               token_hash text NOT NULL UNIQUE,
               created_at timestamptz NOT NULL DEFAULT now(),
               expires_at timestamptz NOT NULL,
               used_at timestamptz
           )"""
    )
    yield client
    client.close()


@pytest.fixture
def db_user(db):
    """Throwaway user row, removed with its tokens after the test."""
    from auth.database import AuthDatabase

    user = AuthDatabase(db).create_user(f"integration-{uuid4()}@example.com")
    yield user
    db.execute("DELETE FROM auth_tokens WHERE user_id = %s", (user.id,))
    db.execute("DELETE FROM users WHERE id = %s", (user.id,))
