"""
Tests for DateService.

Tests cover:
1. Local calendar days in the configured zone
2. Time-of-day windows, including ones that wrap around midnight
3. Elapsed time and time parsing
"""
import pytest
from datetime import date, datetime, timezone

from energy_engine.exceptions import InvalidTimeFormatException
from energy_engine.services.date_service import DateService


class TestLocalDate:
    """Tests for local_date and get_zone"""

    def test_utc_day(self):
        """Should use the UTC calendar day for the UTC zone"""
        value = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        assert DateService.local_date(value, "UTC") == date(2026, 3, 10)

    def test_zone_moves_day_forward(self):
        """Late UTC evening is already the next day in Tokyo"""
        value = datetime(2026, 3, 10, 20, 0, tzinfo=timezone.utc)
        assert DateService.local_date(value, "Asia/Tokyo") == date(2026, 3, 11)

    def test_zone_moves_day_backward(self):
        """Early UTC morning is still the previous day in New York"""
        value = datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc)
        assert DateService.local_date(value, "America/New_York") == date(2026, 3, 9)

    def test_unknown_zone_falls_back_to_utc(self):
        """Should not fail on an unknown zone name"""
        value = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
        assert DateService.local_date(value, "Mars/Olympus") == date(2026, 3, 10)

    def test_naive_values_are_utc(self):
        """Naive datetimes are interpreted as UTC"""
        naive = datetime(2026, 3, 10, 12, 0)
        assert DateService.ensure_aware(naive).tzinfo == timezone.utc


class TestWindow:
    """Tests for is_within_window"""

    @pytest.mark.parametrize("hour,expected", [
        (21, False),
        (22, True),
        (23, True),
        (3, True),
        (6, True),
        (7, False),
        (14, False),
    ])
    def test_window_wrapping_midnight(self, hour, expected):
        """22:00-07:00 covers late evening and early morning"""
        value = datetime(2026, 3, 10, hour, 0, tzinfo=timezone.utc)
        assert DateService.is_within_window(value, "22:00", "07:00", "UTC") is expected

    def test_daytime_window(self):
        """A window with start before end does not wrap"""
        inside = datetime(2026, 3, 10, 13, 30, tzinfo=timezone.utc)
        outside = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)

        assert DateService.is_within_window(inside, "13:00", "14:00", "UTC") is True
        assert DateService.is_within_window(outside, "13:00", "14:00", "UTC") is False

    def test_equal_bounds_is_empty(self):
        """Start equal to end means no window at all"""
        value = datetime(2026, 3, 10, 22, 0, tzinfo=timezone.utc)
        assert DateService.is_within_window(value, "22:00", "22:00", "UTC") is False

    def test_window_uses_local_time(self):
        """14:00 UTC is 23:00 in Tokyo, inside the sleep window"""
        value = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)
        assert DateService.is_within_window(value, "22:00", "07:00", "Asia/Tokyo") is True


class TestElapsedTime:
    """Tests for hours_between and hours_until_local_midnight"""

    def test_hours_between(self):
        start = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)
        end = datetime(2026, 3, 10, 14, 30, tzinfo=timezone.utc)
        assert DateService.hours_between(start, end) == 6.5

    def test_negative_span_is_zero(self):
        """Clock skew never produces negative elapsed time"""
        start = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)
        end = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)
        assert DateService.hours_between(start, end) == 0.0

    def test_hours_until_midnight(self):
        value = datetime(2026, 3, 10, 14, 30, tzinfo=timezone.utc)
        assert DateService.hours_until_local_midnight(value, "UTC") == 9


class TestParseTime:
    """Tests for parse_time"""

    def test_valid_time(self):
        assert DateService.parse_time("07:45") == (7, 45)

    @pytest.mark.parametrize("value", ["", "7", "25:00", "12:60", "ab:cd", None])
    def test_invalid_time(self, value):
        """Should raise InvalidTimeFormatException for malformed input"""
        with pytest.raises(InvalidTimeFormatException):
            DateService.parse_time(value)
