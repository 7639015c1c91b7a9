"""Unit tests for timezone utilities.

Test Strategy:
1. Naive datetimes are UTC, aware ones are converted
2. Local calendar dates and minutes follow the challenge zone (with DST)
3. Local day bounds are 23/24/25 hours long
4. Upstream timestamp parsing
"""
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from dailychallenge.utils.timezone import (
    local_date,
    local_day_bounds,
    local_minute_of_day,
    local_to_utc,
    parse_timestamp,
    to_utc_naive,
    utc_to_local,
    utcnow,
)

TZ = "Europe/Berlin"


class TestConversions:

    def test_naive_is_left_alone(self):
        assert to_utc_naive(datetime(2026, 1, 15, 12, 0)) == datetime(2026, 1, 15, 12, 0)

    def test_aware_is_converted(self):
        value = datetime(2026, 1, 15, 16, 20, tzinfo=ZoneInfo(TZ))
        assert to_utc_naive(value) == datetime(2026, 1, 15, 15, 20)

    def test_round_trip_local(self):
        local = utc_to_local(datetime(2026, 7, 1, 14, 20), TZ)
        assert (local.hour, local.minute) == (16, 20)
        assert local_to_utc(local.replace(tzinfo=None), TZ) == datetime(2026, 7, 1, 14, 20)

    def test_utcnow_is_naive(self):
        assert utcnow().tzinfo is None


class TestLocalCalendar:

    def test_late_utc_evening_is_next_local_day(self):
        """23:30 UTC on the 15th is 00:30 on the 16th in Berlin."""
        assert local_date(datetime(2026, 1, 15, 23, 30), TZ) == date(2026, 1, 16)

    def test_minute_of_day(self):
        assert local_minute_of_day(datetime(2026, 1, 15, 14, 30), TZ) == 15 * 60 + 30

    @pytest.mark.parametrize("day,hours", [
        (date(2026, 1, 15), 24),
        (date(2026, 3, 29), 23),   # spring forward
        (date(2026, 10, 25), 25),  # fall back
    ])
    def test_day_bounds_follow_dst(self, day, hours):
        start, end = local_day_bounds(day, TZ)
        assert end - start == timedelta(hours=hours)

    def test_day_bounds_start_at_local_midnight(self):
        start, _ = local_day_bounds(date(2026, 1, 15), TZ)
        assert start == datetime(2026, 1, 14, 23, 0)


class TestParseTimestamp:

    def test_trailing_z(self):
        assert parse_timestamp("2026-01-15T12:00:00Z") == datetime(2026, 1, 15, 12, 0)

    def test_offset(self):
        assert parse_timestamp("2026-01-15T13:00:00+01:00") == datetime(2026, 1, 15, 12, 0)

    def test_naive_string_is_utc(self):
        assert parse_timestamp("2026-01-15T12:00:00") == datetime(2026, 1, 15, 12, 0)

    def test_bare_date(self):
        assert parse_timestamp(date(2026, 1, 15)) == datetime(2026, 1, 15, 0, 0)

    def test_aware_datetime(self):
        value = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert parse_timestamp(value) == datetime(2026, 1, 15, 12, 0)

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None
