"""Tests for time_utils — pure logic, no HA deps."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone

import pytest

from conftest import ms
from engine.const import BLOCK_DURATION_MS, MILLISECONDS_PER_MINUTE
from engine.time_utils import (
    from_ms,
    is_valid_timestamp,
    is_valid_timezone,
    next_15_minute_boundary,
    parse_iso_timestamp,
    resolve_timezone,
    to_ms,
    today_and_tomorrow,
    utc_date,
    utc_day_number,
)


class TestConversions:
    def test_round_trip(self):
        now = ms(2026, 3, 10, 12, 34)
        assert to_ms(from_ms(now)) == now

    def test_naive_datetime_is_utc(self):
        naive = datetime(2026, 3, 10, 12, 0)
        aware = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert to_ms(naive) == to_ms(aware)

    def test_parse_offset(self):
        assert parse_iso_timestamp("2026-03-10T01:00:00+01:00") == ms(2026, 3, 10, 0, 0)

    def test_parse_zulu(self):
        assert parse_iso_timestamp("2026-03-10T00:00:00Z") == ms(2026, 3, 10)

    def test_parse_fractional_seconds(self):
        assert parse_iso_timestamp("2026-03-10T00:00:00.000+00:00") == ms(2026, 3, 10)

    @pytest.mark.parametrize("value", ["", "not a date", None, 12345])
    def test_parse_invalid(self, value):
        with pytest.raises((ValueError, TypeError)):
            parse_iso_timestamp(value)


class TestValidity:
    def test_valid(self):
        assert is_valid_timestamp(ms(2026, 3, 10))

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, None, "1", True, 1e30])
    def test_invalid(self, value):
        assert not is_valid_timestamp(value)


class TestDayKeys:
    def test_day_number(self):
        assert utc_day_number(ms(2026, 3, 10, 23, 59)) == 10

    def test_day_number_is_utc(self):
        # 00:30 in Berlin is still the previous UTC day
        ts = parse_iso_timestamp("2026-03-11T00:30:00+01:00")
        assert utc_day_number(ts) == 10

    def test_day_number_collides_across_months(self):
        assert utc_day_number(ms(2026, 1, 31)) == utc_day_number(ms(2026, 3, 31))

    def test_calendar_date_does_not_collide(self):
        assert utc_date(ms(2026, 1, 31)) != utc_date(ms(2026, 3, 31))

    def test_today_and_tomorrow_across_month_end(self):
        today, tomorrow = today_and_tomorrow(ms(2026, 1, 31, 22))
        assert today == date(2026, 1, 31)
        assert tomorrow == date(2026, 2, 1)


class TestNextBoundary:
    def test_mid_block(self):
        now = ms(2026, 3, 10, 10, 7)
        assert next_15_minute_boundary(now) == 8 * MILLISECONDS_PER_MINUTE

    def test_exactly_on_boundary_rolls_to_next(self):
        now = ms(2026, 3, 10, 10, 15)
        assert next_15_minute_boundary(now) == BLOCK_DURATION_MS

    def test_one_ms_before_boundary(self):
        now = ms(2026, 3, 10, 10, 15) - 1
        assert next_15_minute_boundary(now) == 1

    def test_always_positive(self):
        start = ms(2026, 3, 10)
        for offset in range(0, BLOCK_DURATION_MS * 2, 60_001):
            delay = next_15_minute_boundary(start + offset)
            assert 0 < delay <= BLOCK_DURATION_MS
            assert (start + offset + delay) % BLOCK_DURATION_MS == 0


class TestTimezones:
    def test_known_zone(self):
        assert is_valid_timezone("Europe/Berlin")

    @pytest.mark.parametrize("name", ["", None, "Mars/Olympus_Mons"])
    def test_unknown_zone(self, name):
        assert not is_valid_timezone(name)

    def test_unknown_zone_resolves_to_utc(self):
        assert resolve_timezone("Mars/Olympus_Mons").utcoffset(None) == timezone.utc.utcoffset(None)
