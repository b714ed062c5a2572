# File: slotwise/services/repositories.py
"""
Collaborator interfaces consumed by the slot engine, with in-memory
implementations used by the CLI and the test suite.

Persistence of schedules and bookings lives outside this package; any store
can be plugged in by implementing these ABCs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from slotwise.utils.buckets import bucket_key
from slotwise.utils.logger import setup_logger
from slotwise.models import (
    CalendarCredential,
    ExistingBooking,
    Host,
    LimitGranularity,
    Schedule,
    get_timezone,
)

logger = setup_logger(__name__)


class ScheduleRepository(ABC):
    @abstractmethod
    def get_by_host_id(self, host_id: str) -> Optional[Schedule]:
        """Return the host's active schedule, or None if they have none."""


class HostRepository(ABC):
    @abstractmethod
    def get_hosts(self, event_type_id: str, host_ids: List[str]) -> List[Host]:
        """Return Host records for the requested ids, in request order."""


class CredentialRepository(ABC):
    @abstractmethod
    def list_for_host(self, host_id: str) -> List[CalendarCredential]:
        """Return the calendar credentials connected by a host."""


class BookingRepository(ABC):
    @abstractmethod
    def list_for_host(self, host_id: str, start: datetime, end: datetime) -> List[ExistingBooking]:
        """Return the host's bookings overlapping [start, end)."""


class BookingCountRepository(ABC):
    @abstractmethod
    def count_in_bucket(self, event_type_id: str, granularity: LimitGranularity,
                        bucket: str, timezone: str = "UTC") -> int:
        """Number of confirmed bookings of the event type in the bucket."""

    @abstractmethod
    def sum_duration_in_bucket(self, event_type_id: str, granularity: LimitGranularity,
                               bucket: str, timezone: str = "UTC") -> int:
        """Total booked minutes of the event type in the bucket."""


class InMemoryScheduleRepository(ScheduleRepository):
    def __init__(self, schedules: Iterable[Schedule] = ()):
        self._schedules: Dict[str, Schedule] = {s.host_id: s for s in schedules}

    def add(self, schedule: Schedule) -> None:
        self._schedules[schedule.host_id] = schedule

    def get_by_host_id(self, host_id: str) -> Optional[Schedule]:
        return self._schedules.get(host_id)


class InMemoryHostRepository(HostRepository):
    """Returns registered hosts only; the engine rejects the ids it leaves out."""

    def __init__(self, hosts: Iterable[Host] = ()):
        self._hosts: Dict[str, Host] = {h.user_id: h for h in hosts}

    def add(self, host: Host) -> None:
        self._hosts[host.user_id] = host

    def get_hosts(self, event_type_id: str, host_ids: List[str]) -> List[Host]:
        hosts = []
        for host_id in host_ids:
            host = self._hosts.get(host_id)
            if host is None:
                logger.warning(f"Host {host_id} not registered for event type {event_type_id}")
                continue
            hosts.append(host)
        return hosts


class InMemoryCredentialRepository(CredentialRepository):
    def __init__(self, credentials: Iterable[CalendarCredential] = ()):
        self._credentials: Dict[str, List[CalendarCredential]] = {}
        for credential in credentials:
            self.add(credential)

    def add(self, credential: CalendarCredential) -> None:
        self._credentials.setdefault(credential.host_id, []).append(credential)

    def list_for_host(self, host_id: str) -> List[CalendarCredential]:
        return list(self._credentials.get(host_id, []))


class InMemoryBookingStore(BookingRepository, BookingCountRepository):
    """Bookings kept in a list; serves both busy-time reads and limit counts."""

    def __init__(self, bookings: Iterable[ExistingBooking] = ()):
        self._bookings: List[ExistingBooking] = list(bookings)

    def add(self, booking: ExistingBooking) -> None:
        self._bookings.append(booking)

    def list_for_host(self, host_id: str, start: datetime, end: datetime) -> List[ExistingBooking]:
        return [
            b for b in self._bookings
            if b.host_id == host_id and b.start < end and b.end > start
        ]

    def _confirmed_in_bucket(self, event_type_id: str, granularity: LimitGranularity,
                             bucket: str, timezone: str) -> List[ExistingBooking]:
        tz = get_timezone(timezone)
        seen = set()
        matched = []
        for booking in self._bookings:
            if booking.event_type_id != event_type_id or not booking.blocks_time:
                continue
            # Collective bookings are stored once per host; count them once
            if booking.uid in seen:
                continue
            if bucket_key(booking.start, granularity, tz) == bucket:
                seen.add(booking.uid)
                matched.append(booking)
        return matched

    def count_in_bucket(self, event_type_id: str, granularity: LimitGranularity,
                        bucket: str, timezone: str = "UTC") -> int:
        return len(self._confirmed_in_bucket(event_type_id, granularity, bucket, timezone))

    def sum_duration_in_bucket(self, event_type_id: str, granularity: LimitGranularity,
                               bucket: str, timezone: str = "UTC") -> int:
        return sum(
            int((b.end - b.start).total_seconds() // 60)
            for b in self._confirmed_in_bucket(event_type_id, granularity, bucket, timezone)
        )
