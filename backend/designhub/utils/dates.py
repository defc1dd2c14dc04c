"""Lenient date handling.

Stored documents and client payloads carry dates in several shapes
(ISO strings with or without offset, ``Z`` suffix, bare dates, epoch
milliseconds). Parsing never raises: anything unreadable becomes ``None``.
"""

from datetime import date, datetime, time, timezone
from typing import Any


def ensure_aware(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any) -> datetime | None:
    """Best-effort conversion to an aware datetime, ``None`` on failure."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, dict) and "$date" in value:
        # Extended JSON from document exports
        return parse_datetime(value["$date"])
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_aware(datetime.fromisoformat(text))
    except ValueError:
        return None


def to_iso(value: datetime | date | None) -> str | None:
    """Canonical ISO-8601 text, ``None`` for missing values."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value).isoformat()
    return value.isoformat()


def overlaps(
    start: datetime | None,
    end: datetime | None,
    range_start: datetime | None,
    range_end: datetime | None,
) -> bool:
    """Whether ``[start, end]`` touches ``[range_start, range_end]``.

    Open range bounds match everything on that side. An event without an
    end is treated as instantaneous.
    """
    start = ensure_aware(start)
    end = ensure_aware(end) or start
    if start is None:
        return False
    range_start = ensure_aware(range_start)
    range_end = ensure_aware(range_end)
    if range_start is not None and end < range_start:
        return False
    if range_end is not None and start > range_end:
        return False
    return True
