# File: tests/unit/test_busy_times.py
"""
Unit tests for BusyTimeAggregator.
Providers are faked; no network access.
"""

import logging
import time

import pytest
from datetime import timedelta

from slotwise.models import (
    BookingStatus,
    BusyInterval,
    BusySource,
    CalendarCredential,
    CalendarProvider,
    ExistingBooking,
)
from slotwise.services.busy_time_cache import BusyTimeCache
from slotwise.services.busy_times import BusyTimeAggregator, utc_days
from slotwise.services.provider_registry import CalendarProviderRegistry
from slotwise.services.repositories import InMemoryBookingStore
from slotwise.utils.deadline import Deadline


def google(cred_id, host_id="alice"):
    return CalendarCredential(id=cred_id, host_id=host_id, provider=CalendarProvider.GOOGLE)


@pytest.fixture
def window(at, monday):
    return at(0), at(0, day=monday + timedelta(days=1))


class TestCalendarBusy:
    """Tests for provider fan-out and degradation."""

    def test_credentials_merged(self, static_provider, window, at):
        provider = static_provider({
            "c1": [(at(10), at(11))],
            "c2": [(at(10, 30), at(12)), (at(15), at(16))],
        })
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]))

        busy = aggregator.get_busy_times("alice", [google("c1"), google("c2")], *window)

        assert busy == [BusyInterval(at(10), at(12)), BusyInterval(at(15), at(16))]
        assert len(provider.calls) == 2

    def test_failing_credential_degrades(self, static_provider, window, at, caplog):
        """An erroring calendar is excluded with a warning, the rest is kept."""
        provider = static_provider({"c1": [(at(10), at(11))]}, failing=("c2",))
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]))

        with caplog.at_level(logging.WARNING):
            busy = aggregator.get_busy_times("alice", [google("c1"), google("c2")], *window)

        assert busy == [BusyInterval(at(10), at(11))]
        assert "c2" in caplog.text

    def test_unregistered_provider_degrades(self, static_provider, window, caplog):
        outlook = CalendarCredential(id="o1", host_id="alice", provider=CalendarProvider.OUTLOOK)
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([static_provider()]))

        with caplog.at_level(logging.WARNING):
            busy = aggregator.get_busy_times("alice", [outlook], *window)

        assert busy == []
        assert "No provider registered for outlook" in caplog.text

    @pytest.mark.slow
    def test_slow_credential_times_out(self, static_provider, window, caplog):
        provider = static_provider({"c1": []}, delay=0.5)
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]), provider_timeout=0.05)

        started = time.monotonic()
        with caplog.at_level(logging.WARNING):
            busy = aggregator.get_busy_times("alice", [google("c1")], *window)

        assert busy == []
        assert time.monotonic() - started < 0.4
        assert "timed out" in caplog.text

    def test_expired_deadline_skips_fetch(self, static_provider, window, caplog):
        provider = static_provider({"c1": []})
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]))
        ticks = iter([0.0, 5.0, 5.0, 5.0])
        deadline = Deadline(1.0, clock=lambda: next(ticks))

        with caplog.at_level(logging.WARNING):
            busy = aggregator.get_busy_times("alice", [google("c1")], *window, deadline=deadline)

        assert busy == []
        assert provider.calls == []
        assert "Deadline reached" in caplog.text

    def test_timeout_capped_by_deadline(self, static_provider, window):
        provider = static_provider({"c1": []})
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]), provider_timeout=10)
        deadline = Deadline(2.0, clock=lambda: 0.0)

        aggregator.get_busy_times("alice", [google("c1")], *window, deadline=deadline)

        assert provider.calls[0][3] == 2.0

    def test_no_credentials(self, window):
        aggregator = BusyTimeAggregator(CalendarProviderRegistry())
        assert aggregator.get_busy_times("alice", [], *window) == []


class TestCaching:
    """Tests for read-through caching of raw provider data."""

    def test_second_call_served_from_cache(self, static_provider, window, at):
        provider = static_provider({"c1": [(at(10), at(11))]})
        cache = BusyTimeCache(ttl_seconds=60, max_entries=100)
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]), cache=cache)

        first = aggregator.get_busy_times("alice", [google("c1")], *window)
        second = aggregator.get_busy_times("alice", [google("c1")], *window)

        assert first == second == [BusyInterval(at(10), at(11))]
        assert len(provider.calls) == 1

    def test_fetch_covers_whole_utc_days(self, static_provider, at):
        provider = static_provider({"c1": [(at(8), at(9))]})
        cache = BusyTimeCache(ttl_seconds=60, max_entries=100)
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]), cache=cache)

        aggregator.get_busy_times("alice", [google("c1")], at(12), at(14))
        _, fetch_start, fetch_end, _ = provider.calls[0]
        assert fetch_start == at(0)
        assert fetch_end == at(0) + timedelta(days=1)

        # The morning block is now cached for a wider request on the same day
        busy = aggregator.get_busy_times("alice", [google("c1")], at(6), at(18))
        assert busy == [BusyInterval(at(8), at(9))]
        assert len(provider.calls) == 1

    def test_failed_fetch_not_cached(self, static_provider, window):
        provider = static_provider(failing=("c1",))
        cache = BusyTimeCache(ttl_seconds=60, max_entries=100)
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]), cache=cache)

        aggregator.get_busy_times("alice", [google("c1")], *window)
        assert len(cache) == 0

    def test_utc_days(self, at, monday):
        assert utc_days(at(10), at(12)) == [monday]
        assert utc_days(at(0), at(0, day=monday + timedelta(days=2))) == [monday, monday + timedelta(days=1)]


class TestBookings:
    """Tests for existing bookings as busy time."""

    def test_bookings_always_included(self, static_provider, window, at):
        store = InMemoryBookingStore([ExistingBooking("b1", "alice", at(13), at(14))])
        provider = static_provider(failing=("c1",))
        aggregator = BusyTimeAggregator(CalendarProviderRegistry([provider]), booking_repository=store)

        busy = aggregator.get_busy_times("alice", [google("c1")], *window)

        assert busy == [BusyInterval(at(13), at(14), BusySource.EXISTING_BOOKING)]

    def test_cancelled_bookings_ignored(self, window, at):
        store = InMemoryBookingStore([
            ExistingBooking("b1", "alice", at(13), at(14), status=BookingStatus.CANCELLED),
            ExistingBooking("b2", "alice", at(15), at(16), status=BookingStatus.PENDING),
            ExistingBooking("b3", "bob", at(9), at(10)),
        ])
        aggregator = BusyTimeAggregator(CalendarProviderRegistry(), booking_repository=store)

        busy = aggregator.get_busy_times("alice", [], *window)

        assert busy == [BusyInterval(at(15), at(16), BusySource.EXISTING_BOOKING)]

    def test_seated_event_bookings_not_busy(self, window, at):
        store = InMemoryBookingStore([
            ExistingBooking("b1", "alice", at(10), at(11), event_type_id="workshop"),
            ExistingBooking("b2", "alice", at(13), at(14), event_type_id="intro"),
        ])
        aggregator = BusyTimeAggregator(CalendarProviderRegistry(), booking_repository=store)

        busy = aggregator.get_busy_times("alice", [], *window, seated_event_type_id="workshop")

        assert busy == [BusyInterval(at(13), at(14), BusySource.EXISTING_BOOKING)]

    def test_preloaded_bookings_skip_repository(self, window, at):
        aggregator = BusyTimeAggregator(CalendarProviderRegistry(), booking_repository=None)
        bookings = [ExistingBooking("b1", "alice", at(10), at(11))]

        busy = aggregator.get_busy_times("alice", [], *window, bookings=bookings)

        assert busy == [BusyInterval(at(10), at(11), BusySource.EXISTING_BOOKING)]


class TestBuffers:
    """Tests for read-time buffer application."""

    def test_apply_buffers(self, at):
        busy = [BusyInterval(at(10), at(11))]
        padded = BusyTimeAggregator.apply_buffers(busy, 15, 5)
        assert padded == [BusyInterval(at(9, 45), at(11, 5))]
        # Input untouched
        assert busy == [BusyInterval(at(10), at(11))]

    def test_no_buffers(self, at):
        busy = [BusyInterval(at(10), at(11))]
        assert BusyTimeAggregator.apply_buffers(busy, 0, 0) == busy
