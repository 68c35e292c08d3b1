"""Timezone and report-date utilities."""

from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DATE_FORMAT = "%Y-%m-%d"


def to_tzinfo(tz_name: str | None) -> tzinfo | None:
    """Convert IANA timezone or offset string (+HH:MM) to tzinfo."""
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        pass
    if len(tz_name) == 6 and tz_name[0] in "+-" and tz_name[3] == ":":
        try:
            hours = int(tz_name[1:3])
            minutes = int(tz_name[4:6])
        except ValueError:
            return None
        delta = timedelta(hours=hours, minutes=minutes)
        if tz_name[0] == "-":
            delta = -delta
        return timezone(delta)
    return None


def resolve_tz(tz_name: str | None) -> tzinfo:
    """Like to_tzinfo, but falls back to UTC."""
    return to_tzinfo(tz_name) or timezone.utc


def today(tz_name: str | None = None, now: datetime | None = None) -> str:
    """Report date (YYYY-MM-DD) for the current moment in the given timezone."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(resolve_tz(tz_name)).strftime(DATE_FORMAT)


RELATIVE_DAYS = {"today": 0, "yesterday": 1, "day_before": 2}


def parse_report_date(value: str, tz_name: str | None = None, now: datetime | None = None) -> str:
    """
    Resolve a report date.

    Args:
        value: YYYY-MM-DD, or one of today / yesterday / day_before
        tz_name: Timezone the relative names are resolved in
        now: Current moment (defaults to the wall clock)

    Returns:
        Date as YYYY-MM-DD

    Raises:
        ValueError: If the value is neither a known name nor a valid date
    """
    offset = RELATIVE_DAYS.get(value.strip().lower())
    if offset is not None:
        now = now or datetime.now(timezone.utc)
        local_day = now.astimezone(resolve_tz(tz_name)).date()
        return (local_day - timedelta(days=offset)).strftime(DATE_FORMAT)
    if len(value) != 10:
        raise ValueError(f"Invalid date: {value}")
    return date.fromisoformat(value).strftime(DATE_FORMAT)


def local_datetime(timestamp: int, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(timestamp, tz)
