# File: slotwise/models/enums.py

from enum import Enum


class SchedulingType(Enum):
    """How hosts of a team event are combined."""
    COLLECTIVE = "collective"    # every host attends
    ROUND_ROBIN = "round_robin"  # fixed hosts + one lucky host


class PeriodType(Enum):
    """How far into the future slots may be offered."""
    ROLLING = "rolling"
    RANGE = "range"
    UNLIMITED = "unlimited"


class LimitGranularity(Enum):
    """Bucket sizes for booking and duration limits."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class BusySource(Enum):
    """Where a busy interval came from."""
    CALENDAR = "calendar"
    EXISTING_BOOKING = "existing-booking"
    BUFFER = "buffer"


class CalendarProvider(Enum):
    """Supported calendar integrations."""
    GOOGLE = "google"
    OUTLOOK = "outlook"


class BookingStatus(Enum):
    """Lifecycle of an existing booking."""
    ACCEPTED = "accepted"
    PENDING = "pending"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def blocks_time(self) -> bool:
        return self in (BookingStatus.ACCEPTED, BookingStatus.PENDING)
