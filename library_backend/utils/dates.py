from datetime import datetime, timedelta, timezone
from typing import Optional

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 text in UTC, so stored timestamps compare correctly as strings."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def parse_datetime(value) -> Optional[datetime]:
    """Read a timestamp stored as ISO-8601 text. Naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def whole_days_between(start: datetime, end: datetime) -> int:
    """floor((end - start) / 1 day); negative when end is before start."""
    return (end - start) // ONE_DAY
