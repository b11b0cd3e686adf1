"""
Date and Time utilities

Conversions between provider timestamps, UTC datetimes and client timezones.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

logger = logging.getLogger(__name__)


class DateFormatError(ValueError):
    """Raised when date format is invalid"""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_unix_timestamp(value: str | int | float) -> datetime:
    """
    Convert a provider unix timestamp (seconds, often sent as a string) to UTC

    Raises:
        DateFormatError: If the value is not numeric
    """
    try:
        return datetime.fromtimestamp(int(float(value)), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise DateFormatError(f"Invalid unix timestamp: '{value}'") from e


def parse_iso8601_to_utc(date_str: str) -> datetime:
    """
    Parse ISO8601 date string and convert to UTC datetime

    Args:
        date_str: ISO8601 datetime string (e.g., '2025-10-09T00:00:00Z' or '2025-10-09T00:00:00+01:00')

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        DateFormatError: If the date string format is invalid
    """
    try:
        normalized = date_str.replace('Z', '+00:00') if date_str.endswith('Z') else date_str
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError) as e:
        raise DateFormatError(f"Invalid ISO8601 datetime format: '{date_str}'") from e


def validate_timezone(tz_name: str) -> str:
    """Return tz_name if it is 'UTC' or a known IANA zone, else raise DateFormatError"""
    if tz_name == "UTC":
        return tz_name
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise DateFormatError(f"Invalid timezone: {tz_name}") from e
    return tz_name


def convert_to_timezone(dt: datetime, target_tz: str) -> str:
    """
    Render a UTC datetime as ISO8601 in the target timezone

    Args:
        dt: Timezone-aware datetime
        target_tz: Target timezone (IANA format or 'UTC')
    """
    if target_tz == "UTC":
        return dt.astimezone(timezone.utc).isoformat()
    return dt.astimezone(ZoneInfo(target_tz)).isoformat()
