"""
PostgreSQL client with connection pooling and scoped transactions.

Uses psycopg2 with ThreadedConnectionPool. Nothing is global: callers build a
PostgresClient from a URL and hand it to whatever needs the database. Every
call acquires a pooled connection and returns it when done, even on error.

Single statements autocommit via execute*/execute_returning. Multi-statement
writes that must land together go through transaction().
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None

_json_registered = False


def _convert_params(params: Params) -> Params:
    """Convert UUIDs to strings and dicts to JSONB adapters."""
    if params is None:
        return None

    def convert(value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, dict):
            return psycopg2.extras.Json(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, tuple):
            return tuple(convert(v) for v in value)
        return value

    if isinstance(params, dict):
        return {k: convert(v) for k, v in params.items()}
    return convert(params)


class PostgresSession:
    """
    Cursor bound to one connection inside one transaction.

    Obtained from PostgresClient.transaction(); never committed by itself.
    """

    def __init__(self, conn):
        self._conn = conn

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, _convert_params(params))
            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            return []

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_rowcount(self, query: str, params: Params = None) -> int:
        """Execute a write, return the number of affected rows."""
        with self._conn.cursor() as cur:
            cur.execute(query, _convert_params(params))
            return cur.rowcount


class PostgresClient:
    """
    PostgreSQL client sharing one connection pool per database URL.

    Usage:
        db = PostgresClient(database_url)

        rows = db.execute("SELECT * FROM members")

        with db.transaction() as tx:
            tx.execute("INSERT INTO ...", (...))
            tx.execute("UPDATE ...", (...))
        # Committed here; rolled back if the block raised
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, minconn: int = 1, maxconn: int = 10):
        self._database_url = database_url
        self._minconn = minconn
        self._maxconn = maxconn
        self._ensure_connection_pool()

    @property
    def database_url(self) -> str:
        return self._database_url

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._minconn,
                    maxconn=self._maxconn,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _json_registered
                if not _json_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    psycopg2.extras.register_uuid()
                    _json_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self) -> Iterator[Any]:
        """Borrow a pooled connection; always returned to the pool."""
        self._ensure_connection_pool()
        pool = self._connection_pools[self._database_url]
        conn = pool.getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")

        try:
            yield conn
        finally:
            pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[PostgresSession]:
        """
        Run a block of statements as one transaction.

        Commits when the block exits normally, rolls back and re-raises
        otherwise.
        """
        with self.get_connection() as conn:
            try:
                yield PostgresSession(conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute query in its own transaction, return list of row dicts."""
        with self.transaction() as tx:
            return tx.execute(query, params)

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Params = None) -> Any:
        """Execute query, return first value of first row or None."""
        row = self.execute_single(query, params)
        return next(iter(row.values())) if row else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return results."""
        return self.execute(query, params)

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
