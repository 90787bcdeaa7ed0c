"""
utils/result.py
---------------
Explicit success/failure value returned by every fallible operation.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from utils.errors import MessageBoardError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value or one of the errors from ``utils.errors``.

    Attributes:
        value: Payload of a successful operation (may be None).
        error: The failure, or None on success.
    """
    value: Optional[T] = None
    error: Optional[MessageBoardError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: MessageBoardError) -> "Result[T]":
        return cls(error=error)
