"""
models/message.py
-----------------
Domain model for a single message board entry.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Message:
    """
    Represents one append-only message.

    Attributes:
        text: Trimmed message body (1-255 characters).
        id: Database primary key (None until inserted).
        timestamp: Creation time assigned by the database (timezone-aware).
    """
    text: str
    id: Optional[int] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        """JSON-ready representation with an ISO-8601 timestamp."""
        return {
            "id": self.id,
            "text": self.text,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __str__(self) -> str:
        return f"#{self.id} | {self.timestamp} | {self.text}"
