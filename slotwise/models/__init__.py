from .enums import (
    SchedulingType,
    PeriodType,
    LimitGranularity,
    BusySource,
    CalendarProvider,
    BookingStatus,
)
from .common import Interval, parse_iso_datetime, parse_iso_date, get_timezone
from .schedule import WeeklyRule, DateOverride, Schedule, default_schedule, schedule_from_dict
from .calendar import BusyInterval, CalendarCredential, credential_from_dict
from .hosts import Host, host_from_dict
from .booking import ExistingBooking, booking_from_dict
from .event_type import EventTypeConstraints
from .slots import CandidateSlot
from .api import SlotRequest, AvailableSlots, slot_request_from_dict

__all__ = [
    "SchedulingType",
    "PeriodType",
    "LimitGranularity",
    "BusySource",
    "CalendarProvider",
    "BookingStatus",
    "Interval",
    "parse_iso_datetime",
    "parse_iso_date",
    "get_timezone",
    "WeeklyRule",
    "DateOverride",
    "Schedule",
    "default_schedule",
    "schedule_from_dict",
    "BusyInterval",
    "CalendarCredential",
    "credential_from_dict",
    "Host",
    "host_from_dict",
    "ExistingBooking",
    "booking_from_dict",
    "EventTypeConstraints",
    "CandidateSlot",
    "SlotRequest",
    "AvailableSlots",
    "slot_request_from_dict",
]
