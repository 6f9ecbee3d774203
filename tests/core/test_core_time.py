"""
Tests for core.time — Clock protocol and the default clock.
"""

import pytest
from datetime import date, datetime, timezone, timedelta

from core.time.clock import (
    FixedClock,
    SystemClock,
    set_default_clock,
    get_default_clock,
    now_utc,
)


# ── Clock Tests ──────────────────────────────────────────────

class TestSystemClock:
    def test_returns_utc_datetime(self):
        clock = SystemClock()
        dt = clock.now_utc()
        assert dt.tzinfo is not None
        assert dt.tzinfo == timezone.utc

    def test_today_is_utc_date(self):
        clock = SystemClock()
        assert isinstance(clock.today(), date)

    def test_time_advances(self):
        clock = SystemClock()
        t1 = clock.now_utc()
        t2 = clock.now_utc()
        assert t2 >= t1


class TestFixedClock:
    def test_returns_fixed_time(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        assert clock.now_utc() == fixed
        assert clock.now_utc() == fixed  # Same every time

    def test_today(self):
        clock = FixedClock(datetime(2026, 1, 31, 23, 59, tzinfo=timezone.utc))
        assert clock.today() == date(2026, 1, 31)

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2025, 1, 1))

    def test_advance_seconds(self):
        fixed = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
        clock = FixedClock(fixed)
        clock.advance(60)
        assert clock.now_utc() == fixed + timedelta(seconds=60)

    def test_advance_days(self):
        clock = FixedClock(datetime(2025, 12, 31, 12, 0, tzinfo=timezone.utc))
        clock.advance(days=1)
        assert clock.today() == date(2026, 1, 1)


class TestDefaultClock:
    def test_set_and_get_default(self):
        original = get_default_clock()
        fixed = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        set_default_clock(fixed)
        try:
            assert now_utc() == datetime(2025, 1, 1, tzinfo=timezone.utc)
            assert get_default_clock() is fixed
        finally:
            set_default_clock(original)
