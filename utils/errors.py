"""
utils/errors.py
---------------
Error taxonomy shared by the database, repository and handler layers.

Every error keeps the low-level exception that produced it in ``cause`` so
the handler can log it, while only ``message`` ever reaches an HTTP client.
"""

from typing import Optional


class MessageBoardError(Exception):
    """Base class for every failure the message board reports."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({type(self.cause).__name__}: {self.cause})"
        return self.message


class DatabaseConnectionError(MessageBoardError):
    """A connection to PostgreSQL could not be obtained."""


class SchemaError(MessageBoardError):
    """The schema bootstrap statement failed."""


class ValidationError(MessageBoardError):
    """Caller input was rejected before any database access."""


class QueryError(MessageBoardError):
    """A statement failed after a connection was obtained."""
