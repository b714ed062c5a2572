# File: slotwise/models/api.py
"""
Request and response models for the slot engine entry point.
"""

import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from slotwise.core.errors import ValidationError
from .common import get_timezone, parse_iso_datetime
from .enums import PeriodType, SchedulingType
from .event_type import EventTypeConstraints
from .slots import CandidateSlot


@dataclass
class SlotRequest:
    """A GetAvailableSlots call."""
    event_type_id: str
    host_ids: List[str]
    date_from: datetime.date
    date_to: datetime.date  # exclusive
    booker_timezone: str
    constraints: EventTypeConstraints
    scheduling_type: SchedulingType = SchedulingType.COLLECTIVE
    previous_host_id: Optional[str] = None
    deadline_seconds: Optional[float] = None

    def __post_init__(self):
        get_timezone(self.booker_timezone)
        if isinstance(self.scheduling_type, str):
            try:
                self.scheduling_type = SchedulingType(self.scheduling_type.lower().replace("-", "_"))
            except ValueError:
                raise ValidationError(f"Unknown scheduling type: {self.scheduling_type}", field="schedulingType")
        self.host_ids = [str(h) for h in self.host_ids]
        if not self.host_ids:
            raise ValidationError("At least one host is required", field="hostIds")
        if len(set(self.host_ids)) != len(self.host_ids):
            raise ValidationError("Host ids must be unique", field="hostIds")
        if self.date_to <= self.date_from:
            raise ValidationError("dateTo must be after dateFrom", field="dateToISO")
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ValidationError("Deadline must be positive", field="deadlineSeconds")
        if self.previous_host_id is not None:
            self.previous_host_id = str(self.previous_host_id)

    @property
    def tz(self) -> datetime.tzinfo:
        return get_timezone(self.booker_timezone)


@dataclass
class AvailableSlots:
    """Slots grouped by booker-local date ("YYYY-MM-DD")."""
    slots_by_date: Dict[str, List[CandidateSlot]] = field(default_factory=dict)
    timezone: str = "UTC"

    @property
    def is_empty(self) -> bool:
        return not any(self.slots_by_date.values())

    def total_slots(self) -> int:
        return sum(len(slots) for slots in self.slots_by_date.values())

    def all_slots(self) -> List[CandidateSlot]:
        return [slot for day in sorted(self.slots_by_date) for slot in self.slots_by_date[day]]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        tz = get_timezone(self.timezone)
        return {
            'slotsByDate': {
                day: [slot.to_dict(tz) for slot in slots]
                for day, slots in sorted(self.slots_by_date.items())
            }
        }


def _parse_request_date(value, tz, label: str, round_up: bool = False) -> datetime.date:
    """
    Booker-local date of an ISO date or datetime.

    With round_up a datetime past local midnight moves to the next date, so an
    exclusive end bound still covers its time of day.
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        return value
    else:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationError(f"Invalid ISO date: {value!r}", field=label)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz)
    if round_up and parsed.time() != datetime.time.min:
        return parsed.date() + datetime.timedelta(days=1)
    return parsed.date()


def _parse_period(period_type: PeriodType, bound) -> dict:
    if bound is None or period_type == PeriodType.UNLIMITED:
        return {}
    if period_type == PeriodType.ROLLING:
        if isinstance(bound, dict):
            return {
                'period_days': int(bound.get('days', 0)),
                'period_count_calendar_days': bool(bound.get('calendarDays', bound.get('calendar_days', True))),
            }
        return {'period_days': int(bound)}
    if not isinstance(bound, dict):
        raise ValidationError("Range period bound needs startDate and endDate", field="periodBound")
    return {
        'period_start_date': bound.get('startDate', bound.get('start_date')),
        'period_end_date': bound.get('endDate', bound.get('end_date')),
    }


def slot_request_from_dict(data: dict) -> SlotRequest:
    """
    Create a SlotRequest from the camelCase wire contract.

    Validation errors surface as ValidationError before any computation.
    """
    booker_timezone = data.get('bookerTimezone')
    tz = get_timezone(booker_timezone)

    try:
        period_type = PeriodType(str(data.get('periodType', 'unlimited')).lower())
    except ValueError:
        raise ValidationError(f"Unknown period type: {data.get('periodType')}", field="periodType")

    try:
        duration = int(data['durationMinutes'])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("durationMinutes is required", field="durationMinutes")

    interval = data.get('slotIntervalMinutes')
    seats = data.get('seatsPerSlot')

    constraints = EventTypeConstraints(
        duration_minutes=duration,
        buffer_before=int(data.get('bufferBeforeMinutes', 0) or 0),
        buffer_after=int(data.get('bufferAfterMinutes', 0) or 0),
        minimum_notice_minutes=int(data.get('minimumNoticeMinutes', 0) or 0),
        slot_interval_minutes=int(interval) if interval else None,
        period_type=period_type,
        booking_limits=data.get('bookingLimits') or {},
        duration_limits=data.get('durationLimits') or {},
        seats_per_slot=int(seats) if seats is not None else None,
        only_show_first_slot_per_day=bool(data.get('onlyShowFirstSlotPerDay', False)),
        **_parse_period(period_type, data.get('periodBound')),
    )

    host_ids = data.get('hostIds') or []
    scheduling_type = data.get('schedulingType', SchedulingType.COLLECTIVE.value)
    deadline = data.get('deadlineSeconds')

    return SlotRequest(
        event_type_id=str(data.get('eventTypeId', '')),
        host_ids=[str(h) for h in host_ids],
        date_from=_parse_request_date(data.get('dateFromISO'), tz, 'dateFromISO'),
        date_to=_parse_request_date(data.get('dateToISO'), tz, 'dateToISO', round_up=True),
        booker_timezone=booker_timezone,
        constraints=constraints,
        scheduling_type=scheduling_type,
        previous_host_id=data.get('previousHostId'),
        deadline_seconds=float(deadline) if deadline is not None else None,
    )
