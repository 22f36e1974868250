# roomboard/services/calendar_utils.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta

from roomboard.core.errors import ValidationError

# Sunday-first weekday alphabet shared by the recurrence engine and the
# backend's days-of-week bitmask.
WEEKDAY_CODES: tuple[str, ...] = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

WEEKDAY_NAMES: dict[str, str] = {
    "SU": "Sunday",
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
}


def format_ymd(value: date) -> str:
    """
    Format a date (or the local calendar date of a naive datetime) as
    `YYYY-MM-DD` without any timezone shift.
    """
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_ymd(value: str) -> date:
    """
    Parse a `YYYY-MM-DD` string into a date.

    Each component is validated by building the date and comparing the parts
    back, so `2025-02-30` is rejected rather than rolled over into March.

    Raises
    ------
    ValidationError
        If the string is malformed or the day does not exist in that month.
    """
    parts = (value or "").strip().split("-")
    if len(parts) != 3:
        raise ValidationError("Please enter a valid date.")

    try:
        year, month, day = (int(p) for p in parts)
    except ValueError:
        raise ValidationError("Please enter a valid date.") from None

    if not year or not month or not day:
        raise ValidationError("Please enter a valid date.")

    if not 1 <= month <= 12:
        raise ValidationError("Invalid date. Month must be between 1 and 12.")

    # Build with the first of the month and add days so invalid days roll over
    # instead of raising, then compare components.
    try:
        built = date(year, month, 1) + timedelta(days=day - 1)
    except (ValueError, OverflowError):
        raise ValidationError("Please enter a valid date.") from None

    if (built.year, built.month, built.day) != (year, month, day):
        raise ValidationError("Invalid date. This month doesn't have that many days.")

    return built


def weekday_index(value: date) -> int:
    """
    Index of the date's weekday in the Sunday-first alphabet (Sunday == 0).
    """
    return (value.weekday() + 1) % 7


def weekday_code(value: date) -> str:
    return WEEKDAY_CODES[weekday_index(value)]


def add_months(value: date, months: int) -> date:
    """
    Calendar-month arithmetic; the day is clamped to the target month's end
    (Jan 31 + 1 month == Feb 28/29).
    """
    return value + relativedelta(months=months)


def resolve_timezone(name: str | None) -> tzinfo:
    """
    Resolve an IANA zone name, falling back to UTC for empty or unknown names.
    """
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def local_day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    UTC instants delimiting the given local calendar day.
    """
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def parse_iso_utc(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO-8601 datetime string and normalize to UTC.

    Naive values are treated as UTC. Returns None if parsing fails.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
