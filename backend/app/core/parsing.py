import math
from datetime import date, datetime, timezone
from typing import Any, Optional

# Numeric timestamps below this are seconds, above it milliseconds.
MILLISECONDS_THRESHOLD = 1_000_000_000_000


def parse_boolean(value: Any, field_name: str) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ValueError(f"Invalid boolean value for {field_name}")


def _from_timestamp(value: float) -> Optional[datetime]:
    if not math.isfinite(value):
        return None
    if value < MILLISECONDS_THRESHOLD:
        value = value * 1000
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Best effort conversion of user input into an aware datetime.

    Accepts datetimes, dates, ISO-8601 strings and epoch numbers (seconds or
    milliseconds, numeric strings included). Returns None when nothing usable
    was given.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_timestamp(float(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return _from_timestamp(float(text))
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
