from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


def serialize_datetime(dt: datetime | str | None) -> str | None:
    """Serialize a datetime or string to ISO format for JSON responses."""
    if not dt:
        return None
    if isinstance(dt, str):
        return dt
    if isinstance(dt, datetime):
        # Mongo hands back naive UTC values.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.isoformat()
    if hasattr(dt, "isoformat"):
        return dt.isoformat()
    return str(dt)


def serialize_object_id(value: Any) -> str | None:
    """Stringify an ObjectId (or anything id-like) for JSON responses."""
    if value is None:
        return None
    return str(value)
