# File: slotwise/models/booking.py

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from slotwise.core.errors import ValidationError
from .common import ensure_aware, parse_iso_datetime
from .enums import BookingStatus


@dataclass
class ExistingBooking:
    """A booking already on a host's calendar in this platform."""
    uid: str
    host_id: str
    start: datetime
    end: datetime
    event_type_id: Optional[str] = None
    status: BookingStatus = BookingStatus.ACCEPTED
    seats_taken: int = 1

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = BookingStatus(self.status.lower())
        if self.end <= self.start:
            raise ValidationError(f"Booking end must be after start: {self.uid}")
        if self.seats_taken < 0:
            raise ValidationError(f"Seats taken cannot be negative: {self.uid}")

    @property
    def blocks_time(self) -> bool:
        return self.status.blocks_time


def booking_from_dict(data: dict) -> ExistingBooking:
    """Create ExistingBooking from dictionary."""
    start = parse_iso_datetime(data.get('start'))
    end = parse_iso_datetime(data.get('end'))
    if start is None or end is None:
        raise ValidationError(f"Booking needs start and end: {data.get('uid')}")
    event_type_id = data.get('event_type_id', data.get('eventTypeId'))
    return ExistingBooking(
        uid=str(data.get('uid', data.get('id', ''))),
        host_id=str(data.get('host_id', data.get('hostId', ''))),
        start=ensure_aware(start),
        end=ensure_aware(end),
        event_type_id=str(event_type_id) if event_type_id is not None else None,
        status=data.get('status', 'accepted'),
        seats_taken=int(data.get('seats_taken', data.get('seatsTaken', 1))),
    )
