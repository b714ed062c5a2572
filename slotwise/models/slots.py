# File: slotwise/models/slots.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class CandidateSlot:
    """A bookable time window produced for one availability request."""
    start: datetime
    end: datetime
    qualified_hosts: FrozenSet[str] = field(default_factory=frozenset)
    remaining_seats: Optional[int] = None

    def sort_key(self):
        """Ascending start, ties broken by lowest host id."""
        lowest_host = min(self.qualified_hosts) if self.qualified_hosts else ""
        return (self.start, lowest_host)

    def to_dict(self, tz=None) -> dict:
        """Convert to the response format; times rendered in `tz` when given."""
        start = self.start.astimezone(tz) if tz is not None else self.start
        end = self.end.astimezone(tz) if tz is not None else self.end
        data = {
            'startISO': start.isoformat(),
            'endISO': end.isoformat(),
            'qualifiedHostIds': sorted(self.qualified_hosts),
        }
        if self.remaining_seats is not None:
            data['remainingSeats'] = self.remaining_seats
        return data
