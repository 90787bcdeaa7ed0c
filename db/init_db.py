"""
db/init_db.py
-------------
Creates the database schema (the messages table) if it does not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

import threading

import psycopg2
from psycopg2 import errors

from db.connection import ConnectionPolicy
from utils.errors import DatabaseConnectionError, SchemaError
from utils.logger import get_logger
from utils.result import Result

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Messages table: append-only board entries, newest read first
CREATE TABLE IF NOT EXISTS messages (
    id              SERIAL PRIMARY KEY,
    text            VARCHAR(255) NOT NULL,
    timestamp       TIMESTAMPTZ DEFAULT NOW()
);
"""

# Two sessions racing CREATE TABLE IF NOT EXISTS can both pass the existence
# check; the loser fails on the catalog's unique index instead of skipping.
_CREATION_RACE_ERRORS = (errors.UniqueViolation, errors.DuplicateTable)


class SchemaState:
    """
    Process-wide "schema is ready" flag.

    Starts False and makes a single False -> True transition; it is never
    reset. Tests create their own instance instead of sharing the process one.
    """

    def __init__(self):
        self._ready = False
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> bool:
        """
        Flip the flag to True.

        Returns:
            True if this call performed the transition, False if it was
            already set.
        """
        with self._lock:
            if self._ready:
                return False
            self._ready = True
            return True


class SchemaBootstrapper:
    """Idempotently ensures the messages table exists."""

    def __init__(self, policy: ConnectionPolicy, state: SchemaState):
        self.policy = policy
        self.state = state

    def ensure_schema(self) -> Result[None]:
        """
        Execute the schema SQL and, on first success, mark the state ready.
        Safe to call repeatedly and concurrently (uses IF NOT EXISTS).

        Returns:
            Result.success() once the table is guaranteed present, or a
            Result carrying a SchemaError wrapping the underlying cause.
        """
        logger.info("Initializing schema if not exists...")
        try:
            with self.policy.connection() as conn:
                self._create_tables(conn)
        except (DatabaseConnectionError, psycopg2.Error) as e:
            logger.error(f"CRITICAL ERROR during schema initialization: {e}")
            return Result.failure(SchemaError("Database initialization failed", e))

        if self.state.mark_ready():
            logger.info("Schema initialization successful.")
        return Result.success()

    @staticmethod
    def _create_tables(conn) -> None:
        try:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
        except _CREATION_RACE_ERRORS as e:
            conn.rollback()
            logger.info(f"Messages table created concurrently by another session: {e}")
        except psycopg2.Error:
            conn.rollback()
            raise


if __name__ == "__main__":
    from db.connection import build_policy

    policy = build_policy()
    result = SchemaBootstrapper(policy, SchemaState()).ensure_schema()
    policy.close()
    if not result.ok:
        raise SystemExit(f"Schema creation failed: {result.error}")
    print("Database schema created successfully.")
