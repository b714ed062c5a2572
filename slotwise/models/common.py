# File: slotwise/models/common.py

import datetime
from dataclasses import dataclass
from typing import Optional

import pytz

from slotwise.core.errors import ValidationError


def parse_iso_datetime(date_str: Optional[str]) -> Optional[datetime.datetime]:
    """Robustly parse ISO date strings with 'Z' or offsets."""
    if not date_str:
        return None
    try:
        # specific fix for Python < 3.11 which doesn't handle 'Z' natively in fromisoformat
        clean_str = date_str.replace('Z', '+00:00')
        return datetime.datetime.fromisoformat(clean_str)
    except ValueError:
        # Fallback for simple date strings without time
        try:
            return datetime.datetime.strptime(date_str, "%Y-%m-%d")
        except ValueError:
            return None


def parse_iso_date(value) -> datetime.date:
    """Accept a date, a datetime or an ISO string and return the calendar date."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationError(f"Invalid ISO date: {value!r}")
    return parsed.date()


def parse_clock_time(value) -> datetime.time:
    """Parse "HH:MM" (or "HH:MM:SS"); "24:00" is read as midnight (end of day)."""
    if isinstance(value, datetime.time):
        return value
    if not isinstance(value, str) or ':' not in value:
        raise ValidationError(f"Invalid time of day: {value!r}")
    parts = value.strip().split(':')
    try:
        hour, minute = int(parts[0]), int(parts[1])
        second = int(parts[2]) if len(parts) > 2 else 0
    except ValueError:
        raise ValidationError(f"Invalid time of day: {value!r}")
    if hour == 24 and minute == 0 and second == 0:
        return datetime.time(0, 0)
    try:
        return datetime.time(hour, minute, second)
    except ValueError:
        raise ValidationError(f"Invalid time of day: {value!r}")


def get_timezone(name: str) -> datetime.tzinfo:
    """Look up a pytz timezone, raising ValidationError for unknown names."""
    if not name or not isinstance(name, str):
        raise ValidationError("Timezone is required", field="timezone")
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone: {name}", field="timezone")


def localize(tz, naive: datetime.datetime) -> datetime.datetime:
    """
    Attach a timezone to a naive wall-clock time.

    Wall-clock times skipped by a DST jump are moved forward by the gap,
    ambiguous times resolve to the standard-time occurrence.
    """
    if hasattr(tz, 'localize'):
        return tz.normalize(tz.localize(naive, is_dst=False))
    return naive.replace(tzinfo=tz)


def ensure_aware(value: datetime.datetime) -> datetime.datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=pytz.UTC)
    return value


@dataclass(frozen=True, order=True)
class Interval:
    """A half-open time range [start, end) with timezone-aware bounds."""
    start: datetime.datetime
    end: datetime.datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValidationError("Interval bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValidationError(f"Interval end must be after start: {self.start} - {self.end}")
