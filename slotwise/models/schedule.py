# File: slotwise/models/schedule.py

import datetime
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from slotwise.core.errors import ValidationError
from .common import get_timezone, parse_clock_time, parse_iso_date

TimeWindow = Tuple[datetime.time, datetime.time]

# 0 = Sunday ... 6 = Saturday
WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def day_of_week(day: datetime.date) -> int:
    """Sunday-based weekday number for a date."""
    return (day.weekday() + 1) % 7


def window_minutes(window: TimeWindow) -> Tuple[int, int]:
    """Minutes since midnight for a window; an end of 00:00 means 24:00."""
    start, end = window
    start_min = start.hour * 60 + start.minute
    end_min = end.hour * 60 + end.minute
    if end_min == 0:
        end_min = 24 * 60
    return start_min, end_min


def _validate_windows(windows: Iterable[TimeWindow], label: str) -> List[TimeWindow]:
    ordered = sorted(windows, key=window_minutes)
    previous_end = None
    for window in ordered:
        start_min, end_min = window_minutes(window)
        if end_min <= start_min:
            raise ValidationError(f"{label}: window end must be after start ({window[0]}-{window[1]})")
        if previous_end is not None and start_min < previous_end:
            raise ValidationError(f"{label}: windows must not overlap")
        previous_end = end_min
    return ordered


@dataclass
class WeeklyRule:
    """Recurring working hours for a set of weekdays."""
    days_of_week: FrozenSet[int]
    start_time: datetime.time
    end_time: datetime.time

    def __post_init__(self):
        self.days_of_week = frozenset(int(d) for d in self.days_of_week)
        if not self.days_of_week:
            raise ValidationError("Weekly rule needs at least one day")
        if any(d < 0 or d > 6 for d in self.days_of_week):
            raise ValidationError(f"Days of week must be 0-6: {sorted(self.days_of_week)}")
        self.start_time = parse_clock_time(self.start_time)
        self.end_time = parse_clock_time(self.end_time)
        _validate_windows([self.window], "Weekly rule")

    @property
    def window(self) -> TimeWindow:
        return (self.start_time, self.end_time)

    def applies_to(self, day: datetime.date) -> bool:
        return day_of_week(day) in self.days_of_week


@dataclass
class DateOverride:
    """Working hours for one specific date; no windows means unavailable."""
    date: datetime.date
    windows: List[TimeWindow] = field(default_factory=list)

    def __post_init__(self):
        self.date = parse_iso_date(self.date)
        self.windows = _validate_windows(
            [(parse_clock_time(s), parse_clock_time(e)) for s, e in self.windows],
            f"Override {self.date.isoformat()}",
        )

    @property
    def is_unavailable(self) -> bool:
        return not self.windows


@dataclass
class Schedule:
    """A host's availability: weekly rules plus per-date overrides."""
    host_id: str
    timezone: str
    rules: List[WeeklyRule] = field(default_factory=list)
    overrides: Dict[datetime.date, DateOverride] = field(default_factory=dict)
    is_default: bool = False

    def __post_init__(self):
        get_timezone(self.timezone)
        if isinstance(self.overrides, list):
            self.overrides = {o.date: o for o in self.overrides}
        self.rules = sorted(self.rules, key=lambda r: window_minutes(r.window))
        for day in range(7):
            _validate_windows(
                [r.window for r in self.rules if day in r.days_of_week],
                f"{WEEKDAY_NAMES[day]} rules",
            )

    def get_override(self, day: datetime.date) -> Optional[DateOverride]:
        return self.overrides.get(day)

    def windows_for(self, day: datetime.date) -> List[TimeWindow]:
        """Local working windows for a schedule-local date, overrides first."""
        override = self.get_override(day)
        if override is not None:
            return list(override.windows)
        return [r.window for r in self.rules if r.applies_to(day)]


def default_schedule(host_id: str, timezone: str, days: Iterable[int],
                     start: str, end: str) -> Schedule:
    """Fallback schedule for hosts without one (e.g. Mon-Fri 09:00-17:00)."""
    return Schedule(
        host_id=host_id,
        timezone=timezone,
        rules=[WeeklyRule(days_of_week=frozenset(days), start_time=start, end_time=end)],
        is_default=True,
    )


def schedule_from_dict(data: dict) -> Schedule:
    """Create Schedule from dictionary (camelCase or snake_case keys)."""
    rules = []
    for raw in data.get('rules', data.get('availability', [])):
        rules.append(WeeklyRule(
            days_of_week=frozenset(raw.get('days_of_week', raw.get('daysOfWeek', raw.get('days', [])))),
            start_time=raw.get('start_time', raw.get('startTime')),
            end_time=raw.get('end_time', raw.get('endTime')),
        ))

    overrides = []
    for raw in data.get('overrides', data.get('dateOverrides', [])):
        windows = raw.get('windows') or []
        if raw.get('unavailable'):
            windows = []
        overrides.append(DateOverride(
            date=raw['date'],
            windows=[(w['start'], w['end']) if isinstance(w, dict) else tuple(w) for w in windows],
        ))

    return Schedule(
        host_id=str(data.get('host_id', data.get('hostId', ''))),
        timezone=data.get('timezone', data.get('timeZone', 'UTC')),
        rules=rules,
        overrides=overrides,
    )
