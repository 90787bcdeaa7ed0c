"""
repositories/message_repo.py
----------------------------
Data access layer for board messages.
All SQL queries related to the `messages` table live here.
"""

from typing import Any

import psycopg2

from config import MESSAGE_LIST_LIMIT, MESSAGE_MAX_LENGTH
from db.connection import ConnectionPolicy
from models.message import Message
from utils.errors import DatabaseConnectionError, QueryError, ValidationError
from utils.logger import get_logger
from utils.result import Result

logger = get_logger(__name__)

INVALID_TEXT = 'Invalid "text" in request body'


class MessageRepository:
    """Repository for the append-only messages table (read and insert only)."""

    def __init__(self, policy: ConnectionPolicy, max_length: int = MESSAGE_MAX_LENGTH):
        self.policy = policy
        self.max_length = max_length

    # ── READ ──────────────────────────────────────────────

    def list_recent(self, limit: int = MESSAGE_LIST_LIMIT) -> Result[list[Message]]:
        """
        Fetch the most recent messages.

        Args:
            limit: Maximum number of messages to return.

        Returns:
            Result with a list of Message objects ordered newest first.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            return Result.failure(ValidationError(f"Invalid limit: {limit!r}"))

        sql = """
            SELECT id, text, timestamp FROM messages
            ORDER BY timestamp DESC, id DESC
            LIMIT %s;
        """
        try:
            with self.policy.connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(sql, (limit,))
                        rows = cur.fetchall()
                finally:
                    # Ends the read transaction so a pooled connection goes back idle.
                    conn.rollback()
        except DatabaseConnectionError as e:
            return Result.failure(e)
        except psycopg2.Error as e:
            logger.error(f"Failed to fetch messages: {e}")
            return Result.failure(QueryError("Error fetching messages", e))

        return Result.success([self._row_to_message(r) for r in rows])

    # ── CREATE ────────────────────────────────────────────

    def append(self, text: Any) -> Result[Message]:
        """
        Validate and insert a new message.

        Args:
            text: Raw caller input; must be a non-blank string.

        Returns:
            Result with the persisted Message (id and timestamp populated),
            a ValidationError if the input was rejected without touching the
            database, or a QueryError if the insert failed.
        """
        if not isinstance(text, str):
            return Result.failure(ValidationError(INVALID_TEXT))
        text = text.strip()
        if not text:
            return Result.failure(ValidationError(INVALID_TEXT))
        if len(text) > self.max_length:
            return Result.failure(
                ValidationError(f'"text" must be at most {self.max_length} characters')
            )

        sql = "INSERT INTO messages (text) VALUES (%s) RETURNING id, timestamp;"
        try:
            with self.policy.connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(sql, (text,))
                        row = cur.fetchone()
                    conn.commit()
                except psycopg2.Error:
                    conn.rollback()
                    raise
        except DatabaseConnectionError as e:
            return Result.failure(e)
        except psycopg2.Error as e:
            logger.error(f"Failed to add message: {e}")
            return Result.failure(QueryError("Error adding message", e))

        message = Message(text=text, id=row[0], timestamp=row[1])
        logger.info(f"Added message #{message.id}")
        return Result.success(message)

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _row_to_message(row: tuple) -> Message:
        """Convert a database row tuple to a Message domain object."""
        return Message(id=row[0], text=row[1], timestamp=row[2])
