from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)


def business_today(now: datetime, tz: ZoneInfo) -> date:
    """Calendar day of ``now`` in the business time zone."""
    return now.astimezone(tz).date()


def parse_time_slot(value: str) -> time:
    """Parse an ``HH:mm`` wall-clock string."""
    return datetime.strptime(value, "%H:%M").time()


def at_wall_clock(day: date, slot: str, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, parse_time_slot(slot), tzinfo=tz)
