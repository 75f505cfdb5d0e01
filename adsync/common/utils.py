"""
Utility functions for AdSync.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any

import orjson


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


def current_datetime() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def json_dumps(obj: Any) -> str:
    """Fast JSON serialization using orjson."""
    return orjson.dumps(obj, default=_json_default).decode("utf-8")


def json_loads(s: str | bytes) -> Any:
    """Fast JSON deserialization using orjson."""
    return orjson.loads(s)


def _json_default(obj: Any) -> Any:
    # Decimal budgets and pydantic models inside sync result blobs
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "as_dict"):
        return obj.as_dict()
    try:
        return float(obj)
    except (TypeError, ValueError):
        raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def safe_float(value: Any, default: float = 0.0) -> float:
    """Convert to float, falling back to ``default`` on missing or bad input."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def safe_int(value: Any, default: int = 0) -> int:
    """Convert to int, falling back to ``default`` on missing or bad input."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


# Entity id columns are 32-bit INTEGER
MAX_ENTITY_ID = 2**31 - 1


def coerce_entity_id(value: Any) -> int | None:
    """
    Return a usable external id, or None.

    Accepts integers and strings of digits in ``1..MAX_ENTITY_ID``.
    Booleans, floats with a fractional part, zero, negatives and ids the
    columns cannot hold are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and 0 < value <= MAX_ENTITY_ID:
        return value
    return None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 date or datetime from the upstream API."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def duration_ms(start: datetime | None, end: datetime | None) -> int | None:
    """Milliseconds between two timestamps, tolerating naive/aware mixes."""
    if start is None or end is None:
        return None
    if (start.tzinfo is None) != (end.tzinfo is None):
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)
    return int((end - start).total_seconds() * 1000)
