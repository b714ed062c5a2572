# File: tests/unit/test_slot_generator.py
"""
Unit tests for SlotGenerator.
Works directly on instant windows; schedule resolution is tested separately.
"""

import pytest
from datetime import date, datetime, timedelta

import pytz

from slotwise.models import (
    BusyInterval,
    EventTypeConstraints,
    ExistingBooking,
    Host,
    Interval,
    LimitGranularity,
    PeriodType,
    SchedulingType,
)
from slotwise.processors.host_qualifier import HostQualificationService
from slotwise.processors.limit_processor import LimitUsage
from slotwise.processors.slot_generator import SlotGenerator, add_business_days

UTC = pytz.UTC


@pytest.fixture
def generator():
    return SlotGenerator()


@pytest.fixture
def qualifier():
    return HostQualificationService(seed=1)


@pytest.fixture
def workday(at):
    return [Interval(at(9), at(17))]


def starts(slots):
    return [(s.start.hour, s.start.minute) for s in slots]


class TestGrid:
    """Tests for candidate start discretization."""

    def test_grid_steps_by_interval(self, generator, at):
        constraints = EventTypeConstraints(duration_minutes=30, slot_interval_minutes=15)
        grid = generator.grid_starts(constraints, {"alice": [Interval(at(9), at(10))]}, SchedulingType.COLLECTIVE)
        assert [(g.hour, g.minute) for g in grid] == [(9, 0), (9, 15), (9, 30)]

    def test_grid_defaults_to_duration(self, generator, at):
        constraints = EventTypeConstraints(duration_minutes=45)
        grid = generator.grid_starts(constraints, {"alice": [Interval(at(9), at(11))]}, SchedulingType.COLLECTIVE)
        assert [(g.hour, g.minute) for g in grid] == [(9, 0), (9, 45)]

    def test_grid_anchored_to_window_start(self, generator, at):
        constraints = EventTypeConstraints(duration_minutes=30)
        grid = generator.grid_starts(constraints, {"alice": [Interval(at(9, 10), at(10, 10))]},
                                     SchedulingType.COLLECTIVE)
        assert [(g.hour, g.minute) for g in grid] == [(9, 10), (9, 40)]

    def test_collective_grid_from_intersection(self, generator, at):
        constraints = EventTypeConstraints(duration_minutes=60)
        windows = {"alice": [Interval(at(9), at(17))], "bob": [Interval(at(13), at(20))]}
        grid = generator.grid_starts(constraints, windows, SchedulingType.COLLECTIVE)
        assert [g.hour for g in grid] == [13, 14, 15, 16]

    def test_round_robin_grid_is_union(self, generator, at):
        constraints = EventTypeConstraints(duration_minutes=60)
        windows = {"alice": [Interval(at(9), at(11))], "bob": [Interval(at(10, 30), at(12, 30))]}
        grid = generator.grid_starts(constraints, windows, SchedulingType.ROUND_ROBIN)
        assert [(g.hour, g.minute) for g in grid] == [(9, 0), (10, 0), (10, 30), (11, 30)]


class TestGenerate:
    """Tests for the full slot pipeline of one host."""

    def run(self, generator, qualifier, constraints, windows, busy=None, now=None, hosts=None, **kwargs):
        hosts = hosts or [Host("alice")]
        return generator.generate(
            constraints,
            windows,
            busy or {},
            hosts,
            kwargs.pop('scheduling_type', SchedulingType.COLLECTIVE),
            qualifier,
            now or UTC.localize(datetime(2025, 1, 6, 0, 0)),
            kwargs.pop('booker_tz', UTC),
            **kwargs,
        )

    def test_busy_time_removed_with_touching_boundaries(self, generator, qualifier, workday, half_hour_event, at):
        slots = self.run(generator, qualifier, half_hour_event, {"alice": workday},
                         busy={"alice": [BusyInterval(at(10), at(10, 30))]})

        assert (9, 30) in starts(slots)
        assert (10, 0) not in starts(slots)
        assert (10, 30) in starts(slots)
        assert len(slots) == 15

    def test_no_partial_slots(self, generator, qualifier, at):
        constraints = EventTypeConstraints(duration_minutes=60, slot_interval_minutes=30)
        slots = self.run(generator, qualifier, constraints, {"alice": [Interval(at(9), at(12))]},
                         busy={"alice": [BusyInterval(at(10, 15), at(10, 45))]})
        assert starts(slots) == [(9, 0), (11, 0)]

    def test_buffers_pad_busy_time(self, generator, qualifier, workday, at):
        constraints = EventTypeConstraints(duration_minutes=30, buffer_before=15, buffer_after=15)
        slots = self.run(generator, qualifier, constraints, {"alice": workday},
                         busy={"alice": [BusyInterval(at(12), at(13))]})

        # 11:45-13:15 is blocked
        assert (11, 0) in starts(slots)
        assert (11, 30) not in starts(slots)
        assert (13, 0) not in starts(slots)
        assert (13, 30) in starts(slots)

    def test_minimum_notice(self, generator, qualifier, workday, at):
        constraints = EventTypeConstraints(duration_minutes=30, minimum_notice_minutes=60)
        slots = self.run(generator, qualifier, constraints, {"alice": workday}, now=at(9, 15))
        assert starts(slots)[0] == (10, 30)

    def test_rolling_period_calendar_days(self, generator, qualifier, at, monday):
        constraints = EventTypeConstraints(duration_minutes=60, period_type=PeriodType.ROLLING, period_days=1)
        windows = {"alice": [Interval(at(9, day=monday + timedelta(days=i)), at(10, day=monday + timedelta(days=i)))
                             for i in range(3)]}

        slots = self.run(generator, qualifier, constraints, windows, now=at(8))

        assert [s.start.date() for s in slots] == [monday, monday + timedelta(days=1)]

    def test_rolling_period_business_days(self, generator, qualifier, at):
        friday = date(2025, 1, 10)
        constraints = EventTypeConstraints(duration_minutes=60, period_type="rolling",
                                           period_days=1, period_count_calendar_days=False)
        windows = {"alice": [Interval(at(9, day=friday + timedelta(days=i)), at(10, day=friday + timedelta(days=i)))
                             for i in range(4)]}

        slots = self.run(generator, qualifier, constraints, windows, now=at(8, day=friday))

        # Friday plus one business day reaches Monday
        assert [s.start.date() for s in slots] == [friday + timedelta(days=i) for i in range(4)]

    def test_range_period(self, generator, qualifier, at, monday):
        tuesday = monday + timedelta(days=1)
        constraints = EventTypeConstraints(duration_minutes=60, period_type=PeriodType.RANGE,
                                           period_start_date=tuesday, period_end_date=tuesday)
        windows = {"alice": [Interval(at(9, day=monday + timedelta(days=i)), at(10, day=monday + timedelta(days=i)))
                             for i in range(3)]}

        slots = self.run(generator, qualifier, constraints, windows)

        assert [s.start.date() for s in slots] == [tuesday]

    def test_booking_limit_blocks_bucket(self, generator, qualifier, at, monday):
        constraints = EventTypeConstraints(duration_minutes=60, booking_limits={'day': 1})
        tuesday = monday + timedelta(days=1)
        windows = {"alice": [Interval(at(9), at(11)), Interval(at(9, day=tuesday), at(11, day=tuesday))]}
        usage = LimitUsage("UTC", counts={(LimitGranularity.DAY, "2025-01-06"): 1})

        slots = self.run(generator, qualifier, constraints, windows, bucket_usage=usage)

        assert [s.start.date() for s in slots] == [tuesday, tuesday]

    def test_seats_remaining(self, generator, qualifier, workday, at):
        constraints = EventTypeConstraints(duration_minutes=60, seats_per_slot=3)
        seated = [
            ExistingBooking("b1", "alice", at(10), at(11), event_type_id="class", seats_taken=1),
            ExistingBooking("b2", "alice", at(10), at(11), event_type_id="class", seats_taken=1),
        ]
        slots = self.run(generator, qualifier, constraints, {"alice": workday}, seated_bookings=seated)

        by_start = {s.start.hour: s for s in slots}
        assert by_start[10].remaining_seats == 1
        assert by_start[9].remaining_seats == 3

    def test_full_seated_slot_omitted(self, generator, qualifier, workday, at):
        constraints = EventTypeConstraints(duration_minutes=60, seats_per_slot=2)
        seated = [ExistingBooking("b1", "alice", at(10), at(11), event_type_id="class", seats_taken=2)]
        slots = self.run(generator, qualifier, constraints, {"alice": workday}, seated_bookings=seated)
        assert 10 not in [s.start.hour for s in slots]

    def test_seated_booking_blocks_overlapping_starts(self, generator, qualifier, workday, at):
        constraints = EventTypeConstraints(duration_minutes=60, slot_interval_minutes=30, seats_per_slot=5)
        seated = [ExistingBooking("b1", "alice", at(10), at(11), event_type_id="class")]
        slots = self.run(generator, qualifier, constraints, {"alice": workday}, seated_bookings=seated)

        assert (10, 0) in starts(slots)
        assert (9, 30) not in starts(slots)
        assert (10, 30) not in starts(slots)

    def test_first_slot_per_day(self, generator, qualifier, at, monday):
        constraints = EventTypeConstraints(duration_minutes=30, only_show_first_slot_per_day=True)
        tuesday = monday + timedelta(days=1)
        windows = {"alice": [Interval(at(9), at(12)), Interval(at(13, day=tuesday), at(15, day=tuesday))]}

        slots = self.run(generator, qualifier, constraints, windows)

        assert [(s.start.date(), s.start.hour) for s in slots] == [(monday, 9), (tuesday, 13)]


class TestTeams:
    """Tests for multi-host generation."""

    def test_collective_needs_everyone(self, generator, qualifier, workday, half_hour_event, at):
        hosts = [Host("alice"), Host("bob")]
        slots = generator.generate(
            half_hour_event, {"alice": workday, "bob": workday},
            {"bob": [BusyInterval(at(9), at(16))]},
            hosts, SchedulingType.COLLECTIVE, qualifier, at(0), UTC,
        )
        assert starts(slots) == [(16, 0), (16, 30)]
        assert all(s.qualified_hosts == frozenset({"alice", "bob"}) for s in slots)

    def test_round_robin_uses_free_host(self, generator, qualifier, workday, half_hour_event, at):
        hosts = [Host("alice"), Host("bob")]
        slots = generator.generate(
            half_hour_event, {"alice": workday, "bob": workday},
            {"alice": [BusyInterval(at(9), at(12))]},
            hosts, SchedulingType.ROUND_ROBIN, qualifier, at(0), UTC,
        )
        morning = [s for s in slots if s.start < at(12)]
        assert morning and all(s.qualified_hosts == frozenset({"bob"}) for s in morning)
        assert len(slots) == 16

    def test_no_collision_with_qualifying_hosts(self, generator, qualifier, workday, at):
        constraints = EventTypeConstraints(duration_minutes=30, slot_interval_minutes=10, buffer_after=10)
        hosts = [Host("alice"), Host("bob")]
        busy = {
            "alice": [BusyInterval(at(9, 40), at(10, 20)), BusyInterval(at(14), at(15))],
            "bob": [BusyInterval(at(11), at(13))],
        }
        slots = generator.generate(constraints, {"alice": workday, "bob": workday}, busy, hosts,
                                   SchedulingType.ROUND_ROBIN, qualifier, at(0), UTC)

        for slot in slots:
            for host_id in slot.qualified_hosts:
                for b in busy[host_id]:
                    padded_end = b.end + timedelta(minutes=10)
                    assert not (slot.start < padded_end and slot.end > b.start)

    def test_output_ordered(self, generator, qualifier, at):
        constraints = EventTypeConstraints(duration_minutes=30)
        hosts = [Host("bob"), Host("alice")]
        windows = {"bob": [Interval(at(9), at(12))], "alice": [Interval(at(10), at(11))]}
        slots = generator.generate(constraints, windows, {}, hosts, SchedulingType.ROUND_ROBIN,
                                   qualifier, at(0), UTC)
        assert [s.start for s in slots] == sorted(s.start for s in slots)


def test_add_business_days():
    friday = date(2025, 1, 10)
    assert add_business_days(friday, 1) == date(2025, 1, 13)
    assert add_business_days(friday, 0) == friday
    assert add_business_days(date(2025, 1, 6), 5) == date(2025, 1, 13)
