"""Cursor-based pagination schemas and utilities.

Ledger history only grows, so cursor pagination keeps pages stable while new
entries are appended, which offset pagination cannot.
"""

from pydantic import BaseModel, Field
from typing import Generic, TypeVar, Optional, List
from datetime import datetime
import base64
import json

T = TypeVar("T")


class CursorPaginatedResponse(BaseModel, Generic[T]):
    """Generic response for cursor-paginated endpoints."""

    items: List[T]
    next_cursor: Optional[str] = Field(
        default=None,
        description="Cursor for fetching the next page (null if no more pages)",
    )
    has_more: bool = Field(
        description="Whether there are more items after this page",
    )
    total: Optional[int] = Field(
        default=None,
        description="Total count (optional, may be omitted for performance)",
    )


def encode_cursor(id: int, timestamp: Optional[datetime]) -> str:
    """Encode pagination cursor from ID and timestamp.

    Uses both ID and timestamp so entries sharing a timestamp still page
    deterministically.
    """
    data = {
        "id": id,
        "ts": timestamp.isoformat() if timestamp else None,
    }
    json_str = json.dumps(data, separators=(",", ":"))
    return base64.urlsafe_b64encode(json_str.encode()).decode()


def decode_cursor(cursor: str) -> tuple[int, Optional[datetime]]:
    """Decode pagination cursor to ID and timestamp.

    Returns:
        Tuple of (id, timestamp or None)

    Raises:
        ValueError: If cursor is invalid or malformed
    """
    try:
        json_str = base64.urlsafe_b64decode(cursor.encode()).decode()
        data = json.loads(json_str)
        cursor_id = int(data["id"])
        cursor_ts = None
        if data.get("ts"):
            cursor_ts = datetime.fromisoformat(data["ts"])
        return cursor_id, cursor_ts
    except (ValueError, KeyError, TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid cursor format: {e}")
