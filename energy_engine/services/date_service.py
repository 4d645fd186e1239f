"""
Date calculation and manipulation service.
Handles local calendar days, time-of-day windows and elapsed-time math.
"""
from datetime import datetime, timedelta, date, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from energy_engine.exceptions import InvalidTimeFormatException


class DateService:
    """Service for date-related operations"""

    @staticmethod
    def utcnow() -> datetime:
        """Current instant as an aware UTC datetime"""
        return datetime.now(timezone.utc)

    @staticmethod
    def ensure_aware(value: datetime) -> datetime:
        """Attach UTC to naive datetimes; aware values are returned unchanged"""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @staticmethod
    def get_zone(tz_name: Optional[str]) -> ZoneInfo:
        """
        Resolve an IANA zone name.

        Unknown or empty names fall back to UTC.
        """
        try:
            return ZoneInfo(tz_name or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            return ZoneInfo("UTC")

    @staticmethod
    def to_local(value: datetime, tz_name: Optional[str]) -> datetime:
        """Convert an instant to the user's local zone"""
        return DateService.ensure_aware(value).astimezone(DateService.get_zone(tz_name))

    @staticmethod
    def local_date(value: datetime, tz_name: Optional[str]) -> date:
        """Calendar day of an instant in the user's local zone"""
        return DateService.to_local(value, tz_name).date()

    @staticmethod
    def local_hour(value: datetime, tz_name: Optional[str]) -> int:
        """Hour of day (0-23) of an instant in the user's local zone"""
        return DateService.to_local(value, tz_name).hour

    @staticmethod
    def hours_between(start: datetime, end: datetime) -> float:
        """
        Hours elapsed from start to end.

        Negative spans (clock skew) are reported as zero.
        """
        delta = DateService.ensure_aware(end) - DateService.ensure_aware(start)
        return max(0.0, delta.total_seconds() / 3600)

    @staticmethod
    def parse_time(time_str: str) -> tuple[int, int]:
        """
        Parse time string into hour and minute.

        Args:
            time_str: Time string in "HH:MM" format

        Returns:
            Tuple of (hour, minute)

        Raises:
            InvalidTimeFormatException: If time string is invalid
        """
        try:
            parts = time_str.split(":")
            hour = int(parts[0])
            minute = int(parts[1])
        except (ValueError, IndexError, AttributeError):
            raise InvalidTimeFormatException(str(time_str))

        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise InvalidTimeFormatException(time_str)
        return hour, minute

    @staticmethod
    def is_within_window(
        value: datetime,
        start_time: str,
        end_time: str,
        tz_name: Optional[str]
    ) -> bool:
        """
        Check whether an instant falls inside a local time-of-day window.

        Windows whose start is after their end wrap around midnight
        (e.g. 22:00-07:00). A window with equal start and end is empty.
        """
        start_h, start_m = DateService.parse_time(start_time)
        end_h, end_m = DateService.parse_time(end_time)

        local = DateService.to_local(value, tz_name)
        now_minutes = local.hour * 60 + local.minute
        start_minutes = start_h * 60 + start_m
        end_minutes = end_h * 60 + end_m

        if start_minutes < end_minutes:
            return start_minutes <= now_minutes < end_minutes
        if start_minutes > end_minutes:
            # Wraps around midnight
            return now_minutes >= start_minutes or now_minutes < end_minutes
        return False

    @staticmethod
    def hours_until_local_midnight(value: datetime, tz_name: Optional[str]) -> int:
        """Whole hours left in the user's local day"""
        local = DateService.to_local(value, tz_name)
        midnight = datetime.combine(local.date() + timedelta(days=1), datetime.min.time(), tzinfo=local.tzinfo)
        return int((midnight - local).total_seconds() // 3600)
