"""Time and timezone utilities."""

from datetime import datetime
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

UTC = ZoneInfo("UTC")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_timestamp(value: datetime | str | None) -> datetime:
    """Parse a schedule timestamp into aware UTC.

    Accepts a datetime or an ISO-8601 string. Raises ValueError when the
    value is missing or cannot be parsed.
    """
    if value is None:
        raise ValueError("timestamp is missing")
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"unparseable timestamp: {value!r}")
    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"unparseable timestamp: {value!r}") from e
    return ensure_utc(parsed)


def to_storage(dt: datetime) -> str:
    """Serialize a datetime for the database (UTC ISO-8601)."""
    # Fixed width so stored values compare correctly as strings in SQL
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def from_storage(value: str) -> datetime:
    """Inverse of to_storage."""
    return ensure_utc(datetime.fromisoformat(value))


def from_utc(dt: datetime, tz: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    return ensure_utc(dt).astimezone(ZoneInfo(tz))


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime relative to now.

    Examples:
        "in 5 minutes"
        "in 2 hours"
        "tomorrow"
        "2 days overdue"
    """
    if now is None:
        now = utcnow()

    delta = ensure_utc(dt) - ensure_utc(now)
    total_seconds = delta.total_seconds()

    if total_seconds < 0:
        abs_seconds = abs(total_seconds)
        if abs_seconds < 60:
            return "just now"
        elif abs_seconds < 3600:
            minutes = int(abs_seconds / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''} overdue"
        elif abs_seconds < 86400:
            hours = int(abs_seconds / 3600)
            return f"{hours} hour{'s' if hours != 1 else ''} overdue"
        else:
            days = int(abs_seconds / 86400)
            return f"{days} day{'s' if days != 1 else ''} overdue"
    else:
        if total_seconds < 3600:
            minutes = int(total_seconds / 60)
            return f"in {minutes} minute{'s' if minutes != 1 else ''}"
        elif total_seconds < 86400:
            hours = int(total_seconds / 3600)
            return f"in {hours} hour{'s' if hours != 1 else ''}"
        elif total_seconds < 172800:  # 2 days
            return "tomorrow"
        else:
            days = int(total_seconds / 86400)
            return f"in {days} days"
