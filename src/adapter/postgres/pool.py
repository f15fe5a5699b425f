"""PostgreSQL connection pool.

One pool per process, opened at startup and closed on shutdown.
Every connection handed out by the pool runs in UTC and carries a
``statement_timeout`` equal to the request timeout.
"""

import logging
import threading
from functools import partial

from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout

logger = logging.getLogger(__name__)

_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def _configure_connection(conn: Connection, timeout_ms: int) -> None:
    """Called once for each new connection."""
    conn.execute("SET TimeZone = 'UTC'")
    if timeout_ms > 0:
        conn.execute(f"SET statement_timeout = {int(timeout_ms)}")
    conn.commit()


def init_pool(dsn: str, timeout: float, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    """Open the connection pool and wait until it holds ``min_size`` connections.

    Raises:
        RuntimeError: pool already initialized
        ConnectionError: the server cannot be reached
    """
    global _pool

    with _pool_lock:
        if _pool is not None:
            raise RuntimeError("Connection pool already initialized")

        pool = ConnectionPool(
            conninfo=dsn,
            min_size=min_size,
            max_size=max_size,
            configure=partial(_configure_connection, timeout_ms=int(timeout * 1000)),
            timeout=timeout,
            open=True,
        )
        try:
            pool.wait(timeout=10.0)
        except PoolTimeout as e:
            pool.close()
            raise ConnectionError(f"failed to connect to PostgreSQL: {e}") from e

        _pool = pool
        logger.info("Connection pool initialized", extra={"min_size": min_size, "max_size": max_size})
        return pool


def get_pool() -> ConnectionPool:
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    return _pool


def close_pool() -> None:
    """Close the pool. Safe to call even if it was never opened."""
    global _pool

    with _pool_lock:
        if _pool is not None:
            logger.info("Closing connection pool")
            _pool.close()
            _pool = None
