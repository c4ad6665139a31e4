"""
Active window evaluation tests

Window semantics: [startHour, endHour) on the hour of the already-localized
timestamp. No wraparound, minutes ignored.
"""

import pytest
from datetime import datetime, timedelta, timezone

from schedule_operator.services.window import desired_replicas, is_within_active_window

TORONTO_SUMMER = timezone(timedelta(hours=-4))


def at(hour: int, minute: int = 0, second: int = 0, tz=TORONTO_SUMMER) -> datetime:
    return datetime(2025, 6, 2, hour, minute, second, tzinfo=tz)


class TestIsWithinActiveWindow:
    """[start, end) hour window"""

    @pytest.mark.parametrize("hour", range(24))
    def test_matches_half_open_range_for_every_hour(self, hour):
        assert is_within_active_window(at(hour), 9, 17) == (9 <= hour < 17)

    def test_start_hour_is_active(self):
        assert is_within_active_window(at(9), 9, 17) is True

    def test_end_hour_is_inactive(self):
        assert is_within_active_window(at(17), 9, 17) is False

    def test_minutes_and_seconds_are_ignored(self):
        assert is_within_active_window(at(16, 59, 59), 9, 17) is True
        assert is_within_active_window(at(8, 59, 59), 9, 17) is False

    def test_end_hour_24_covers_last_hour(self):
        assert is_within_active_window(at(23, 30), 0, 24) is True

    def test_wraparound_window_is_never_active(self):
        # start=22, end=6 is not treated as an overnight window
        for hour in (22, 23, 0, 3, 5, 12):
            assert is_within_active_window(at(hour), 22, 6) is False

    def test_empty_window_is_never_active(self):
        assert is_within_active_window(at(9), 9, 9) is False

    def test_uses_timestamp_hour_without_conversion(self):
        # 10:00 at -04:00 is 14:00 UTC; the local hour decides
        assert is_within_active_window(at(10), 9, 11) is True
        assert is_within_active_window(at(10).astimezone(timezone.utc), 9, 11) is False


class TestDesiredReplicas:

    def test_active_uses_configured_replicas(self):
        assert desired_replicas(True, 5) == 5

    def test_inactive_scales_to_zero(self):
        assert desired_replicas(False, 5) == 0
