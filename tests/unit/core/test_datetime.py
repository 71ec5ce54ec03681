"""Tests for BCQ timing helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from core.utils.datetime import ensure_aware, hours_between, is_delayed, minutes_between

OPENED = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class TestDelay:

    @pytest.mark.parametrize("elapsed,expected", [
        (timedelta(hours=23), False),
        (timedelta(hours=24), False),
        (timedelta(hours=24, seconds=1), True),
        (timedelta(hours=25), True),
    ])
    def test_strictly_greater_than_threshold(self, elapsed, expected):
        assert is_delayed(OPENED, OPENED + elapsed) is expected

    def test_custom_threshold(self):
        assert is_delayed(OPENED, OPENED + timedelta(hours=3), threshold_hours=2)

    def test_naive_datetimes_are_utc(self):
        naive_completed = (OPENED + timedelta(hours=25)).replace(tzinfo=None)
        assert is_delayed(OPENED, naive_completed)


class TestDurations:

    def test_minutes_between_rounds(self):
        assert minutes_between(OPENED, OPENED + timedelta(minutes=90, seconds=29)) == 90
        assert minutes_between(OPENED, OPENED + timedelta(minutes=90, seconds=31)) == 91

    def test_hours_between(self):
        assert hours_between(OPENED, OPENED + timedelta(hours=1, minutes=30)) == 1.5

    def test_ensure_aware_keeps_offsets(self):
        aware = datetime(2026, 1, 1, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_aware(aware) is aware
        assert ensure_aware(datetime(2026, 1, 1)).tzinfo == timezone.utc
