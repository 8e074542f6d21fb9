"""
DateTime utilities for venue-local dates and times-of-day.
All wall-clock arithmetic happens in the venue's IANA timezone via pytz.
"""
from datetime import datetime, date, time
from typing import Union
import re
import pytz

from core.exceptions import InvalidInputError


MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def get_timezone(name: str) -> pytz.BaseTzInfo:
    """Resolve an IANA timezone name, rejecting unknown ones."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise InvalidInputError(f"Unknown timezone: {name}")


def get_current_datetime(tz_name: str = "UTC") -> datetime:
    """Get current datetime in the given timezone."""
    return datetime.now(get_timezone(tz_name))


def parse_time_of_day(value: Union[str, time]) -> time:
    """
    Parse an ``HH:MM`` string into a time object.

    Args:
        value: 24-hour time string, or an existing time (returned unchanged)

    Returns:
        time object

    Raises:
        InvalidInputError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise InvalidInputError("Time must be in HH:MM format")

    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidInputError(f"Time must be in HH:MM format (got {value!r})")
    return time(int(match.group(1)), int(match.group(2)))


def parse_date(value: Union[str, date]) -> date:
    """Parse an ISO ``YYYY-MM-DD`` string into a date object."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"Date must be in YYYY-MM-DD format (got {value!r})")


def format_time(value: time) -> str:
    """Format a time of day as ``HH:MM``."""
    return value.strftime('%H:%M')


def minutes_of_day(value: time) -> int:
    """Minutes elapsed since midnight."""
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    """Build a time of day from minutes, wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    """Add minutes to a time of day (e.g. 23:00 + 120 -> 01:00)."""
    return time_from_minutes(minutes_of_day(value) + minutes)


def localize(day: date, value: time, tz_name: str) -> datetime:
    """
    Combine a venue-local date and time into an aware datetime.

    Args:
        day: Calendar date in the venue's timezone
        value: Time of day in the venue's timezone
        tz_name: IANA timezone of the venue

    Returns:
        Timezone-aware datetime
    """
    return get_timezone(tz_name).localize(datetime.combine(day, value))

