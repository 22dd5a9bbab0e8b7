from datetime import datetime, timedelta, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # PostgreSQL hands back aware datetimes, SQLite naive ones
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def seconds_until(value: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    if value is None:
        return None
    now = now or utcnow()
    return max(0, int((as_naive_utc(value) - now).total_seconds()))


def expiry_rank(value: Optional[datetime]) -> datetime:
    # no expiry sorts after every real deadline
    if value is None:
        return datetime.max
    return as_naive_utc(value)


def cooldown_bucket(value: datetime, cooldown: timedelta) -> int:
    """Index of the fixed-width cooldown slot that ``value`` falls in."""
    return int((as_naive_utc(value) - EPOCH).total_seconds() // cooldown.total_seconds())
