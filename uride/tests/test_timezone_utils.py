"""
Tests for timezone and clock helpers
"""
from datetime import datetime, timedelta, timezone

from uride.utils.clock import FixedClock, get_clock
from uride.utils.timezone_utils import ensure_utc, get_display_timezone, to_display_time


class TestTimezoneUtils:

    def test_get_display_timezone(self):
        """Default display timezone is India Standard Time"""
        assert get_display_timezone() == "Asia/Kolkata"

    def test_ensure_utc_treats_naive_as_utc(self):
        naive = datetime(2025, 1, 15, 4, 30)
        assert ensure_utc(naive) == datetime(2025, 1, 15, 4, 30, tzinfo=timezone.utc)
        assert ensure_utc(None) is None

    def test_ensure_utc_converts_aware(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        assert ensure_utc(datetime(2025, 1, 15, 10, 0, tzinfo=ist)).hour == 4

    def test_to_display_time(self):
        """UTC instants shift by +05:30; naive values are already local"""
        utc_dt = datetime(2023, 5, 15, 17, 0, tzinfo=timezone.utc)
        assert to_display_time(utc_dt).hour == 22
        assert to_display_time(utc_dt).minute == 30
        assert to_display_time(datetime(2023, 5, 15, 23, 0)).hour == 23


class TestClock:

    def test_fixed_clock_advances(self):
        clock = FixedClock(datetime(2025, 1, 1, 0, 0))
        assert clock.now().tzinfo == timezone.utc
        assert clock.advance(hours=3) == datetime(2025, 1, 1, 3, 0, tzinfo=timezone.utc)

    def test_app_clock_is_used(self, app, clock):
        assert get_clock() is clock
