from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from app.core.config import settings


def utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC; naive input is assumed to already be UTC."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def local_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.timezone)


def to_local(dt: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Naive UTC (as stored) to an aware datetime in the ward's zone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(tz or local_zone())
