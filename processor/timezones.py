"""Timezone conversion helpers shared by sync and task code."""
from datetime import datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo

ISO_UTC_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


def to_utc_iso(value: datetime) -> str:
    """
    Format a datetime as a second-precision UTC ISO 8601 string.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(ISO_UTC_FORMAT)


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime."""
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_datetime(value: Union[datetime, str]) -> datetime:
    if isinstance(value, str):
        return parse_iso(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_user_timezone(value: Union[datetime, str], tz_name: str) -> datetime:
    """
    Convert a UTC instant to the user's timezone.

    Args:
        value: Datetime or ISO string in UTC
        tz_name: IANA timezone name (e.g., 'America/Denver')

    Returns:
        Aware datetime in the user's timezone
    """
    return _as_datetime(value).astimezone(ZoneInfo(tz_name))


def from_user_timezone(value: datetime, tz_name: str) -> datetime:
    """
    Interpret a wall-clock datetime in the user's timezone and convert to UTC.

    Args:
        value: Naive datetime as read on the user's clock
        tz_name: IANA timezone name

    Returns:
        Aware datetime in UTC
    """
    local = value.replace(tzinfo=ZoneInfo(tz_name))
    return local.astimezone(timezone.utc)


def hour_in_timezone(value: Union[datetime, str], tz_name: str) -> int:
    return to_user_timezone(value, tz_name).hour


def create_date_in_timezone(date_str: str, time_str: str, tz_name: str) -> str:
    """
    Build a UTC ISO string from a local date and time in the user's timezone.

    Args:
        date_str: Date like "2025-10-23"
        time_str: Time like "23:59:59"
        tz_name: IANA timezone name

    Returns:
        UTC ISO 8601 string
    """
    local = datetime.fromisoformat(f"{date_str}T{time_str}")
    return to_utc_iso(from_user_timezone(local, tz_name))
