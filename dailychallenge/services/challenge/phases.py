"""
Daily challenge phase rules.

Phases: first_half -> halftime_window -> second_half -> overtime -> complete

Timing Rules (challenge timezone, DST-aware):
- 24h challenges: halftime at 16:20 local on the start day, or the next
  day when the challenge starts at/after 16:20
- Other durations: exact midpoint between start and end
- halftime_window: the HALFTIME_WINDOW_MINUTES (15) after halftime
- Power Hour: 24h challenges only, 15:30-17:30 local inclusive, 2.0x points

Overtime and completion are entered by external triggers; the flags only
move forward.

All functions are pure. Datetimes in and out are naive UTC (aware inputs
are converted).
"""
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional

from dailychallenge.core.config import settings
from dailychallenge.utils.timezone import local_minute_of_day, local_to_utc, to_utc_naive, utc_to_local

FULL_DAY_HOURS = 24
HALFTIME_LOCAL_TIME = time(16, 20)

POWER_HOUR_START_MINUTE = 15 * 60 + 30  # 15:30
POWER_HOUR_END_MINUTE = 17 * 60 + 30  # 17:30
POWER_HOUR_MULTIPLIER = 2.0
NORMAL_MULTIPLIER = 1.0


class ChallengePhase(str, Enum):
    FIRST_HALF = "first_half"
    HALFTIME_WINDOW = "halftime_window"
    SECOND_HALF = "second_half"
    OVERTIME = "overtime"
    COMPLETE = "complete"


def calculate_halftime_timestamp(
    start_time: datetime,
    duration_hours: int = FULL_DAY_HOURS,
    tz_name: Optional[str] = None,
) -> datetime:
    """
    Halftime instant for a challenge (naive UTC).

    Examples (Europe/Berlin, winter):
        start 09:00 local -> 16:20 local same day (15:20 UTC)
        start 18:00 local -> 16:20 local next day
    """
    start_utc = to_utc_naive(start_time)

    if duration_hours != FULL_DAY_HOURS:
        return start_utc + timedelta(hours=duration_hours) / 2

    local_start = utc_to_local(start_utc, tz_name).replace(tzinfo=None)
    halftime_day = local_start.date()
    if local_start.time() >= HALFTIME_LOCAL_TIME:
        halftime_day += timedelta(days=1)

    return local_to_utc(datetime.combine(halftime_day, HALFTIME_LOCAL_TIME), tz_name)


def calculate_end_time(start_time: datetime, duration_hours: int = FULL_DAY_HOURS) -> datetime:
    return to_utc_naive(start_time) + timedelta(hours=duration_hours)


def is_in_power_hour(now: datetime, duration_hours: int = FULL_DAY_HOURS, tz_name: Optional[str] = None) -> bool:
    """True between 15:30 and 17:30 local (inclusive) for 24h challenges."""
    if duration_hours != FULL_DAY_HOURS:
        return False
    minute = local_minute_of_day(to_utc_naive(now), tz_name)
    return POWER_HOUR_START_MINUTE <= minute <= POWER_HOUR_END_MINUTE


def get_power_hour_multiplier(
    now: datetime,
    duration_hours: int = FULL_DAY_HOURS,
    tz_name: Optional[str] = None,
) -> float:
    if is_in_power_hour(now, duration_hours, tz_name):
        return POWER_HOUR_MULTIPLIER
    return NORMAL_MULTIPLIER


def determine_phase(
    now: datetime,
    halftime_at: Optional[datetime],
    status: str,
    is_halftime_passed: bool,
    is_in_overtime: bool,
    window_minutes: Optional[int] = None,
) -> ChallengePhase:
    """
    Current phase of a challenge.

    Precedence: complete, overtime, halftime reached (window for the first
    window_minutes, then second half), already snapshotted, first half.
    """
    if status == "complete":
        return ChallengePhase.COMPLETE
    if is_in_overtime:
        return ChallengePhase.OVERTIME

    now = to_utc_naive(now)
    if halftime_at is not None and now >= halftime_at:
        if window_minutes is None:
            window_minutes = settings.HALFTIME_WINDOW_MINUTES
        if now <= halftime_at + timedelta(minutes=window_minutes):
            return ChallengePhase.HALFTIME_WINDOW
        return ChallengePhase.SECOND_HALF

    if is_halftime_passed:
        return ChallengePhase.SECOND_HALF
    return ChallengePhase.FIRST_HALF
