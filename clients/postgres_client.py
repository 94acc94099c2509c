"""
PostgreSQL client with connection pooling for the account tables.

Uses psycopg2 with ThreadedConnectionPool. Every pooled connection carries a
server-side statement_timeout so no auth or billing query can outlive the
caller's request budget.

Errors from psycopg2 propagate to the caller unchanged. There is no retry
here: a failed query is a failed request.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

# UUID adaptation is process-global in psycopg2
_uuid_registered = False


class PostgresClient:
    """
    PostgreSQL client returning rows as plain dicts.

    Usage:
        db = PostgresClient(database_url)
        row = db.execute_single("SELECT id FROM users WHERE email = %s", (email,))
        rows = db.execute_returning(
            "UPDATE auth_tokens SET used_at = %s WHERE id = %s AND used_at IS NULL RETURNING id",
            (now, token_id),
        )

    execute_returning commits before returning, so a conditional UPDATE ...
    RETURNING is a single atomic compare-and-set at the database.
    """

    # Class-level connection pools shared across instances
    # Keyed by (database_url, statement_timeout_ms)
    _connection_pools: Dict[Tuple[str, int], psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, statement_timeout_ms: int = 5000):
        self._database_url = database_url
        self._statement_timeout_ms = statement_timeout_ms
        self._pool_key = (database_url, statement_timeout_ms)
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._pool_key not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=10,
                    dsn=self._database_url,
                    connect_timeout=10,
                    options=f"-c statement_timeout={self._statement_timeout_ms}",
                )

                global _uuid_registered
                if not _uuid_registered:
                    psycopg2.extras.register_uuid()
                    _uuid_registered = True

                self._connection_pools[self._pool_key] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection; rolled back on error, always returned."""
        if self._pool_key not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._pool_key]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")
            yield conn
        except Exception:
            if conn is not None and not conn.closed:
                conn.rollback()
            raise
        finally:
            if conn:
                pool.putconn(conn)

    def _convert_params(self, params: Tuple | Dict | None) -> Tuple | Dict | None:
        """Convert UUID objects to strings."""
        if params is None:
            return None

        def convert(value: Any) -> Any:
            if isinstance(value, UUID):
                return str(value)
            if isinstance(value, (list, tuple)):
                return type(value)(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(params)

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        params = self._convert_params(params)
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                conn.commit()
                return rows

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING and commit. Empty list if no row matched."""
        params = self._convert_params(params)
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()]
                conn.commit()
                return rows

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._pool_key in self._connection_pools:
                self._connection_pools[self._pool_key].closeall()
                del self._connection_pools[self._pool_key]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
