"""DeterministicClock behaviour and operator-timezone day boundaries."""

from datetime import datetime, timedelta, timezone

import pytest
import pytz

from buildline_kernel.domain.clock import DeterministicClock, day_bounds


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        before = clock.now()
        clock.advance(90)
        assert clock.now() - before == timedelta(seconds=90)

    def test_tick_returns_new_time(self):
        clock = DeterministicClock()
        start = clock.now()
        assert clock.tick() == start + timedelta(seconds=1)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2025, 6, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now_utc() == target


class TestDayBounds:
    def test_utc_day(self):
        start, end = day_bounds(datetime(2024, 3, 5, 13, 0, tzinfo=timezone.utc), "UTC")
        assert start == datetime(2024, 3, 5, tzinfo=timezone.utc)
        assert end == datetime(2024, 3, 6, tzinfo=timezone.utc)

    def test_operator_day_differs_from_utc_day(self):
        # 20:00 UTC on Jan 1 is already 01:30 on Jan 2 in India
        start, end = day_bounds(datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc), "Asia/Kolkata")
        assert start == datetime(2024, 1, 1, 18, 30, tzinfo=timezone.utc)
        assert end == datetime(2024, 1, 2, 18, 30, tzinfo=timezone.utc)

    def test_dst_day_is_23_hours(self):
        # US spring-forward day
        start, end = day_bounds(
            datetime(2024, 3, 10, 18, 0, tzinfo=timezone.utc), "America/New_York"
        )
        assert end - start == timedelta(hours=23)

    def test_unknown_timezone(self):
        with pytest.raises(pytz.UnknownTimeZoneError):
            day_bounds(datetime(2024, 1, 1, tzinfo=timezone.utc), "Mars/Olympus")
