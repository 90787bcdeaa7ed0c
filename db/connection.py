"""
db/connection.py
----------------
Manages the lifecycle of PostgreSQL connections.

Two interchangeable policies are provided and exactly one is chosen per
deployment (see ``DB_CONNECTION_POLICY`` in config.py):

    SingletonPolicy  - one psycopg2 ThreadedConnectionPool per process, created
                       lazily on first use and reused by every request.
    EphemeralPolicy  - a fresh psycopg2 connection per operation, closed when
                       the operation ends, whatever its outcome.

Callers never touch a policy's internals; they use the ``connection()``
context manager, which guarantees ``release()`` on every exit path.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import psycopg2
from psycopg2 import pool

from config import (
    DATABASE_URL,
    DB_CONNECTION_POLICY,
    DB_CONNECT_TIMEOUT,
    DB_POOL_MAX,
    DB_POOL_MIN,
)
from utils.errors import DatabaseConnectionError
from utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionPolicy:
    """Strategy interface: how a connection is obtained and given back."""

    name = "abstract"

    def acquire(self):
        """
        Obtain a usable connection.

        Raises:
            DatabaseConnectionError: If the database is unreachable or the
                credentials are rejected.
        """
        raise NotImplementedError

    def release(self, conn) -> None:
        """Give back a connection obtained from ``acquire()``."""
        raise NotImplementedError

    def close(self) -> None:
        """Dispose of any process-wide resources held by the policy."""

    @contextmanager
    def connection(self) -> Iterator:
        """
        Scoped acquisition: yields a connection and releases it exactly once,
        on success, on validation failure and on database errors alike.
        """
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)


class SingletonPolicy(ConnectionPolicy):
    """
    Process-wide connection pool, created on first use.

    The pool lives until ``close()`` is called or the process exits;
    ``release()`` only returns a connection to it. ThreadedConnectionPool
    raises instead of waiting once ``max_conn`` connections are checked out,
    so callers queue on a semaphore sized to the pool before ``getconn()``.
    """

    name = "singleton"

    def __init__(
        self,
        dsn: str = DATABASE_URL,
        min_conn: int = DB_POOL_MIN,
        max_conn: int = DB_POOL_MAX,
        connect_timeout: int = DB_CONNECT_TIMEOUT,
        pool_factory: Callable = pool.ThreadedConnectionPool,
    ):
        self._dsn = dsn
        self._min_conn = min_conn
        self._max_conn = max_conn
        self._connect_timeout = connect_timeout
        self._pool_factory = pool_factory
        self._pool = None
        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max_conn)

    def _get_pool(self):
        if self._pool is not None:
            return self._pool
        with self._lock:
            if self._pool is None:
                logger.info("Creating new database connection pool.")
                try:
                    self._pool = self._pool_factory(
                        self._min_conn,
                        self._max_conn,
                        self._dsn,
                        connect_timeout=self._connect_timeout,
                    )
                except psycopg2.Error as e:
                    logger.error(f"Failed to initialize database pool: {e}")
                    raise DatabaseConnectionError("Could not create connection pool", e) from e
        return self._pool

    def acquire(self):
        db_pool = self._get_pool()
        self._slots.acquire()
        try:
            return db_pool.getconn()
        except (psycopg2.Error, pool.PoolError) as e:
            self._slots.release()
            logger.error(f"Failed to get connection from pool: {e}")
            raise DatabaseConnectionError("Could not get a pooled connection", e) from e

    def release(self, conn) -> None:
        try:
            db_pool = self._pool
            if db_pool is None:
                # Pool disposed while this connection was checked out.
                conn.close()
                return
            try:
                db_pool.putconn(conn)
            except pool.PoolError:
                # Checked out from a pool that has since been replaced.
                conn.close()
        finally:
            self._slots.release()

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logger.info("Database connection pool closed.")


class EphemeralPolicy(ConnectionPolicy):
    """A dedicated connection per operation, closed on release."""

    name = "ephemeral"

    def __init__(
        self,
        dsn: str = DATABASE_URL,
        connect_timeout: int = DB_CONNECT_TIMEOUT,
        connect: Callable = psycopg2.connect,
    ):
        self._dsn = dsn
        self._connect_timeout = connect_timeout
        self._connect = connect

    def acquire(self):
        try:
            return self._connect(self._dsn, connect_timeout=self._connect_timeout)
        except psycopg2.Error as e:
            logger.error(f"Failed to open database connection: {e}")
            raise DatabaseConnectionError("Could not open a database connection", e) from e

    def release(self, conn) -> None:
        # Closing discards any transaction left open by a failed statement.
        conn.close()


_POLICIES = {
    SingletonPolicy.name: SingletonPolicy,
    EphemeralPolicy.name: EphemeralPolicy,
}


def build_policy(name: Optional[str] = None, **kwargs) -> ConnectionPolicy:
    """
    Build the connection policy configured for this deployment.

    Args:
        name: "singleton" or "ephemeral"; defaults to DB_CONNECTION_POLICY.
        **kwargs: Forwarded to the policy constructor.

    Raises:
        ValueError: If the policy name is unknown.
    """
    name = (name or DB_CONNECTION_POLICY).strip().lower()
    try:
        policy_cls = _POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown DB_CONNECTION_POLICY {name!r}; expected one of {sorted(_POLICIES)}"
        ) from None
    logger.info(f"Using '{name}' database connection policy.")
    return policy_cls(**kwargs)
