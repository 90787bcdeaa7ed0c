"""
Shared fixtures: an in-memory, psycopg2-shaped stand-in for PostgreSQL.

FakeDatabase understands exactly the statements the message board issues
(CREATE TABLE IF NOT EXISTS, INSERT ... RETURNING, SELECT ... LIMIT) and
records how many connections were opened and closed so tests can check
resource safety. Failures are injected per statement keyword.
"""

import threading
from datetime import datetime, timedelta, timezone

import psycopg2
import pytest
from psycopg2 import errors, pool

from db.connection import EphemeralPolicy, SingletonPolicy
from db.init_db import SchemaState
from handlers.message_handler import RequestDispatcher


class FakeDatabase:
    def __init__(self):
        self.lock = threading.Lock()
        self.tables = set()
        self.rows = []
        self.next_id = 1
        self.create_calls = 0
        self.opened = 0
        self.closed = 0
        self._clock = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._failures = {}
        # When set to a threading.Event, SELECTs block until it is set.
        self.select_gate = None

    # ── failure injection ─────────────────────────────────

    def fail(self, keyword, exc, times=None):
        """Raise ``exc`` when a statement containing ``keyword`` runs."""
        self._failures[keyword.upper()] = [exc, times]

    def _maybe_fail(self, statement):
        for keyword, entry in list(self._failures.items()):
            if keyword in statement:
                exc, times = entry
                if times is not None:
                    entry[1] -= 1
                    if entry[1] <= 0:
                        del self._failures[keyword]
                raise exc

    # ── connection factory (psycopg2.connect signature) ───

    def connect(self, dsn=None, **kwargs):
        with self.lock:
            self.opened += 1
        return FakeConnection(self)

    # ── statement execution ───────────────────────────────

    def execute(self, sql, params=None):
        statement = " ".join(
            line for line in sql.split("\n") if not line.strip().startswith("--")
        )
        statement = " ".join(statement.split()).upper()
        with self.lock:
            self._maybe_fail(statement)
            if statement.startswith("CREATE TABLE IF NOT EXISTS MESSAGES"):
                self.create_calls += 1
                self.tables.add("messages")
                return []
            if "messages" not in self.tables:
                raise errors.UndefinedTable('relation "messages" does not exist')
            if statement.startswith("INSERT INTO MESSAGES"):
                self._clock += timedelta(seconds=1)
                row = (self.next_id, params[0], self._clock)
                self.next_id += 1
                self.rows.append(row)
                return [(row[0], row[2])]
            if statement.startswith("SELECT"):
                ordered = sorted(self.rows, key=lambda r: (r[2], r[0]), reverse=True)
                return ordered[: params[0]]
        raise psycopg2.ProgrammingError(f"unsupported statement: {sql}")

    @property
    def texts(self):
        return [r[1] for r in self.rows]


class FakeCursor:
    def __init__(self, db):
        self._db = db
        self._result = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        gate = self._db.select_gate
        if gate is not None and sql.lstrip().upper().startswith("SELECT"):
            gate.wait(timeout=5)
        self._result = self._db.execute(sql, params)

    def fetchone(self):
        return self._result[0] if self._result else None

    def fetchall(self):
        return list(self._result)


class FakeConnection:
    def __init__(self, db):
        self._db = db
        self.closed = 0
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return FakeCursor(self._db)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        if not self.closed:
            self.closed = 1
            with self._db.lock:
                self._db.closed += 1


class FakePool:
    """Mimics psycopg2.pool.ThreadedConnectionPool, including its refusal to
    hand out more than ``maxconn`` connections at once."""

    instances = 0

    def __init__(self, db, minconn, maxconn, dsn, **kwargs):
        FakePool.instances += 1
        self.db = db
        self.maxconn = maxconn
        self.dsn = dsn
        self.kwargs = kwargs
        self.checked_out = 0
        self.returned = 0
        self.peak = 0
        self.closed = False
        self._lock = threading.Lock()

    def getconn(self):
        with self._lock:
            if self.checked_out - self.returned >= self.maxconn:
                raise pool.PoolError("connection pool exhausted")
            self.checked_out += 1
            self.peak = max(self.peak, self.checked_out - self.returned)
        return self.db.connect()

    def putconn(self, conn):
        with self._lock:
            self.returned += 1

    def closeall(self):
        self.closed = True


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def ephemeral_policy(fake_db):
    return EphemeralPolicy(dsn="postgresql://test", connect=fake_db.connect)


@pytest.fixture
def singleton_policy(fake_db):
    FakePool.instances = 0
    return SingletonPolicy(
        dsn="postgresql://test",
        pool_factory=lambda *args, **kwargs: FakePool(fake_db, *args, **kwargs),
    )


@pytest.fixture
def ready_db(fake_db):
    """A fake database whose messages table already exists."""
    fake_db.tables.add("messages")
    return fake_db


@pytest.fixture
def schema_state():
    return SchemaState()


@pytest.fixture
def dispatcher(ephemeral_policy, schema_state):
    return RequestDispatcher(ephemeral_policy, schema_state)
