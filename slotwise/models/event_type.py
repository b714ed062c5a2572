# File: slotwise/models/event_type.py

import datetime
from dataclasses import dataclass, field
from typing import Dict, Optional

from slotwise.core.errors import ValidationError
from .common import parse_iso_date
from .enums import LimitGranularity, PeriodType

# Smallest to largest, used to check that limits never shrink with bucket size
GRANULARITY_ORDER = [
    LimitGranularity.DAY,
    LimitGranularity.WEEK,
    LimitGranularity.MONTH,
    LimitGranularity.YEAR,
]


def parse_limits(raw: Optional[dict], label: str) -> Dict[LimitGranularity, int]:
    """
    Normalize a limits map.

    Accepts {"day": 2}, {"PER_DAY": 2} or {LimitGranularity.DAY: 2}.
    """
    if not raw:
        return {}
    limits: Dict[LimitGranularity, int] = {}
    for key, value in raw.items():
        if isinstance(key, LimitGranularity):
            granularity = key
        else:
            clean_key = str(key).lower()
            if clean_key.startswith('per_'):
                clean_key = clean_key[4:]
            try:
                granularity = LimitGranularity(clean_key)
            except ValueError:
                raise ValidationError(f"Unknown limit granularity: {key}", field=label)
        if value is None:
            continue
        try:
            amount = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Limit must be an integer: {key}={value!r}", field=label)
        if amount <= 0:
            raise ValidationError(f"Limit must be positive: {key}={value}", field=label)
        limits[granularity] = amount
    return limits


def _validate_limit_order(limits: Dict[LimitGranularity, int], label: str) -> None:
    previous = None
    for granularity in GRANULARITY_ORDER:
        if granularity not in limits:
            continue
        if previous is not None and limits[granularity] < limits[previous]:
            raise ValidationError(
                f"{granularity.value} limit must not be smaller than {previous.value} limit",
                field=label,
            )
        previous = granularity


@dataclass
class EventTypeConstraints:
    """Scheduling policy of one event type, validated once at construction."""
    duration_minutes: int
    buffer_before: int = 0
    buffer_after: int = 0
    minimum_notice_minutes: int = 0
    slot_interval_minutes: Optional[int] = None
    period_type: PeriodType = PeriodType.UNLIMITED
    period_days: Optional[int] = None
    period_count_calendar_days: bool = True
    period_start_date: Optional[datetime.date] = None
    period_end_date: Optional[datetime.date] = None
    booking_limits: Dict[LimitGranularity, int] = field(default_factory=dict)
    duration_limits: Dict[LimitGranularity, int] = field(default_factory=dict)
    seats_per_slot: Optional[int] = None
    only_show_first_slot_per_day: bool = False

    def __post_init__(self):
        if self.duration_minutes is None or self.duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes", field="durationMinutes")
        for name in ('buffer_before', 'buffer_after', 'minimum_notice_minutes'):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} cannot be negative", field=name)
        if self.slot_interval_minutes is not None and self.slot_interval_minutes <= 0:
            raise ValidationError("Slot interval must be positive", field="slotIntervalMinutes")

        if isinstance(self.period_type, str):
            try:
                self.period_type = PeriodType(self.period_type.lower())
            except ValueError:
                raise ValidationError(f"Unknown period type: {self.period_type}", field="periodType")

        if self.period_type == PeriodType.ROLLING:
            if self.period_days is None or self.period_days < 0:
                raise ValidationError("Rolling period needs a non-negative number of days", field="periodBound")
        elif self.period_type == PeriodType.RANGE:
            if self.period_start_date is None or self.period_end_date is None:
                raise ValidationError("Range period needs a start and end date", field="periodBound")
            self.period_start_date = parse_iso_date(self.period_start_date)
            self.period_end_date = parse_iso_date(self.period_end_date)
            if self.period_end_date < self.period_start_date:
                raise ValidationError("Range period ends before it starts", field="periodBound")

        self.booking_limits = parse_limits(self.booking_limits, "bookingLimits")
        self.duration_limits = parse_limits(self.duration_limits, "durationLimits")
        _validate_limit_order(self.booking_limits, "bookingLimits")
        _validate_limit_order(self.duration_limits, "durationLimits")
        for granularity, minutes in self.duration_limits.items():
            if minutes < self.duration_minutes:
                raise ValidationError(
                    f"{granularity.value} duration limit is shorter than the event",
                    field="durationLimits",
                )

        if self.seats_per_slot is not None and self.seats_per_slot < 1:
            raise ValidationError("Seats per slot must be at least 1", field="seatsPerSlot")

    @property
    def duration(self) -> datetime.timedelta:
        return datetime.timedelta(minutes=self.duration_minutes)

    @property
    def step(self) -> datetime.timedelta:
        """Discretization step; defaults to the event duration."""
        return datetime.timedelta(minutes=self.slot_interval_minutes or self.duration_minutes)

    @property
    def has_limits(self) -> bool:
        return bool(self.booking_limits or self.duration_limits)

    @property
    def is_seated(self) -> bool:
        return self.seats_per_slot is not None
