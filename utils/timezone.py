"""UTC-everywhere time handling. Clinic-local time only at display boundaries."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to the clinic's timezone for display.

    ONLY use this at display boundaries (reference numbers, emails, ages).
    All stored values remain in UTC.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name (e.g., "America/Chicago")

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return dt.astimezone(_zone(tz_name))


def today_local(tz_name: str) -> date:
    """Today's calendar date in the given timezone."""
    return to_local(now_utc(), tz_name).date()


def month_bounds(day: date) -> tuple[date, date]:
    """First and last calendar day of the month containing day."""
    first = day.replace(day=1)
    return first, first + relativedelta(months=1, days=-1)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 timestamp from a client into UTC.

    Accepts a trailing Z or any numeric offset. Raises ValueError if the
    string is malformed or has no timezone info.
    """
    dt = isoparse(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)
