# File: tests/conftest.py
"""
Pytest configuration and shared fixtures.
Provides reusable schedules, hosts, fake calendar providers and engines.
"""

import pytest
import time
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import Mock
import sys

import pytz

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from slotwise.core.errors import ProviderError
from slotwise.core.slot_engine import SlotEngine
from slotwise.models import (
    BusyInterval,
    CalendarCredential,
    CalendarProvider,
    EventTypeConstraints,
    ExistingBooking,
    Host,
    Schedule,
    WeeklyRule,
)
from slotwise.services.busy_time_cache import BusyTimeCache
from slotwise.services.notifier import NoSlotsNotifier
from slotwise.services.provider_registry import CalendarBusyTimeProvider, CalendarProviderRegistry
from slotwise.services.repositories import (
    InMemoryBookingStore,
    InMemoryCredentialRepository,
    InMemoryHostRepository,
    InMemoryScheduleRepository,
)

# Monday
MONDAY = date(2025, 1, 6)


def utc(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    """Aware UTC datetime on `day` (default: Monday 2025-01-06)."""
    return pytz.UTC.localize(datetime(day.year, day.month, day.day, hour, minute))


# ==================== Fake Providers ====================

class StaticBusyProvider(CalendarBusyTimeProvider):
    """Returns canned busy intervals per credential id."""

    provider = CalendarProvider.GOOGLE

    def __init__(self, busy: Optional[Dict[str, List[Tuple[datetime, datetime]]]] = None,
                 failing: Tuple[str, ...] = (), delay: float = 0.0):
        self.busy = busy or {}
        self.failing = set(failing)
        self.delay = delay
        self.calls = []

    def fetch_busy(self, credential, start, end, timeout):
        self.calls.append((credential.id, start, end, timeout))
        if self.delay:
            time.sleep(self.delay)
        if credential.id in self.failing:
            raise ProviderError(f"calendar {credential.id} unavailable", credential.id)
        return [
            BusyInterval(s, e) for s, e in self.busy.get(credential.id, [])
            if s < end and e > start
        ]


class RecordingNotifier(NoSlotsNotifier):
    def __init__(self):
        self.events = []

    def notify(self, event_details):
        self.events.append(event_details)


# ==================== Model Fixtures ====================

@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def at():
    """at(hour, minute=0, day=MONDAY) -> aware UTC datetime."""
    return utc


@pytest.fixture
def static_provider():
    """The StaticBusyProvider class, for tests that configure their own."""
    return StaticBusyProvider


@pytest.fixture
def weekday_schedule():
    """Factory for Mon-Fri 09:00-17:00 schedules."""
    def _create(host_id: str = "alice", timezone: str = "UTC",
                start: str = "09:00", end: str = "17:00") -> Schedule:
        return Schedule(
            host_id=host_id,
            timezone=timezone,
            rules=[WeeklyRule(frozenset({1, 2, 3, 4, 5}), start, end)],
        )
    return _create


@pytest.fixture
def half_hour_event():
    """30 minute event, no buffers, no notice, no limits."""
    return EventTypeConstraints(duration_minutes=30, slot_interval_minutes=30)


@pytest.fixture
def monday_morning():
    """'now' well before Monday's working hours."""
    return utc(7, 0)


# ==================== Engine Fixtures ====================

@pytest.fixture
def recording_notifier():
    return RecordingNotifier()


@pytest.fixture
def make_engine(weekday_schedule, monday_morning, recording_notifier):
    """
    Factory fixture building a SlotEngine on in-memory repositories.

    `busy` maps host id -> [(start, end)], served through one Google
    credential per host by StaticBusyProvider.
    """
    def _create(
        hosts: Optional[List[Host]] = None,
        schedules: Optional[List[Schedule]] = None,
        busy: Optional[Dict[str, List[Tuple[datetime, datetime]]]] = None,
        bookings: Optional[List[ExistingBooking]] = None,
        now: Optional[datetime] = None,
        provider: Optional[CalendarBusyTimeProvider] = None,
        booking_counts=None,
        cache: Optional[BusyTimeCache] = None,
        fairness_seed: int = 7,
    ) -> SlotEngine:
        hosts = hosts or [Host("alice")]
        if schedules is None:
            schedules = [weekday_schedule(h.user_id, h.timezone) for h in hosts]
        busy = busy or {}
        provider = provider or StaticBusyProvider({f"cred-{h}": v for h, v in busy.items()})
        credentials = [
            CalendarCredential(id=f"cred-{h.user_id}", host_id=h.user_id, provider=CalendarProvider.GOOGLE)
            for h in hosts
        ]
        store = InMemoryBookingStore(bookings or [])
        fixed_now = now or monday_morning

        return SlotEngine(
            schedule_repository=InMemoryScheduleRepository(schedules),
            host_repository=InMemoryHostRepository(hosts),
            credential_repository=InMemoryCredentialRepository(credentials),
            booking_repository=store,
            booking_count_repository=booking_counts or store,
            registry=CalendarProviderRegistry([provider]),
            cache=cache,
            notifier=recording_notifier,
            clock=lambda: fixed_now,
            fairness_seed=fairness_seed,
        )
    return _create


# ==================== Mock Service Fixtures ====================

@pytest.fixture
def mock_calendar_service():
    """Mock Google Calendar API resource answering free/busy queries."""
    mock = Mock()
    mock.freebusy().query().execute.return_value = {
        'calendars': {
            'primary': {
                'busy': [
                    {'start': '2025-01-06T10:00:00Z', 'end': '2025-01-06T10:30:00Z'},
                ]
            }
        }
    }
    return mock


# ==================== Pytest Markers ====================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
