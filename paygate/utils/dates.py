from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Indonesian providers report local timestamps without an offset.
WIB = timezone(timedelta(hours=7), "WIB")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def expires_in(minutes: int) -> datetime:
    return utcnow() + timedelta(minutes=minutes)


def parse_provider_time(value: Any) -> Optional[datetime]:
    """ISO-8601 or ``YYYY-MM-DD HH:MM:SS``; naive values are taken as WIB."""
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=WIB)
    return parsed
