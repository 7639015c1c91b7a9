"""
Timezone utilities for the daily challenge service.

All times are stored as naive UTC. Challenge rules (16:20 halftime,
Power Hour, the calendar date an order belongs to) are evaluated in the
configured challenge timezone, which observes DST.

Conventions:
- A naive datetime is always UTC.
- Aware datetimes are converted, never reinterpreted.
"""
from datetime import datetime, date, time, timezone, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from dailychallenge.core.config import settings


def get_challenge_zone(tz_name: Optional[str] = None) -> ZoneInfo:
    """Return the zone challenge rules are evaluated in."""
    return ZoneInfo(tz_name or settings.CHALLENGE_TIMEZONE)


def utcnow() -> datetime:
    """Current time as naive UTC (database storage format)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """
    Normalize a datetime to naive UTC.

    Example:
        >>> to_utc_naive(datetime(2026, 3, 2, 16, 20, tzinfo=ZoneInfo("Europe/Berlin")))
        datetime(2026, 3, 2, 15, 20)
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_to_local(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a UTC datetime (naive or aware) to an aware local datetime."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_challenge_zone(tz_name))


def local_to_utc(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Convert a local wall-clock datetime to naive UTC.

    Naive input is interpreted in the challenge zone here, unlike the other
    helpers.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=get_challenge_zone(tz_name))
    return to_utc_naive(value)


def local_date(value: datetime, tz_name: Optional[str] = None) -> date:
    """Calendar date of a UTC instant in the challenge zone."""
    return utc_to_local(value, tz_name).date()


def local_minute_of_day(value: datetime, tz_name: Optional[str] = None) -> int:
    """Minutes since local midnight (0-1439)."""
    local = utc_to_local(value, tz_name)
    return local.hour * 60 + local.minute


def local_day_bounds(day: date, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """
    UTC bounds [start, end) of a local calendar day.

    DST days are 23 or 25 hours long, so the span is computed from the two
    local midnights rather than adding 24 hours.
    """
    start = local_to_utc(datetime.combine(day, time.min), tz_name)
    end = local_to_utc(datetime.combine(day + timedelta(days=1), time.min), tz_name)
    return start, end


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an upstream timestamp into naive UTC.

    Accepts datetimes, ISO 8601 strings (with or without offset, trailing
    'Z' allowed) and bare dates. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_utc_naive(datetime.fromisoformat(text))
    except ValueError:
        return None
