# File: slotwise/models/calendar.py

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from slotwise.core.errors import ValidationError
from .enums import BusySource, CalendarProvider


@dataclass(frozen=True)
class BusyInterval:
    """A time range during which a host cannot be booked."""
    start: datetime
    end: datetime
    source: BusySource = BusySource.CALENDAR

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValidationError("Busy interval bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValidationError(f"Busy interval end must be after start: {self.start} - {self.end}")

    def overlaps_with(self, start: datetime, end: datetime) -> bool:
        """Check if this interval overlaps [start, end)."""
        return self.start < end and self.end > start


@dataclass
class CalendarCredential:
    """A connected calendar account of a host."""
    id: str
    host_id: str
    provider: CalendarProvider
    external_id: str = "primary"  # calendar id / mailbox address at the provider
    access_token: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.provider, str):
            try:
                self.provider = CalendarProvider(self.provider.lower())
            except ValueError:
                raise ValidationError(f"Unknown calendar provider: {self.provider}", field="provider")


def credential_from_dict(data: dict) -> CalendarCredential:
    """Create CalendarCredential from dictionary."""
    return CalendarCredential(
        id=str(data['id']),
        host_id=str(data.get('host_id', data.get('hostId', ''))),
        provider=data.get('provider', 'google'),
        external_id=data.get('external_id', data.get('externalId', 'primary')),
        access_token=data.get('access_token', data.get('accessToken')),
    )
