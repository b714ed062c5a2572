# File: slotwise/processors/slot_generator.py
"""
Slot generation module.

Turns resolved schedule windows and busy times into bookable slots:

1. Free windows per host = schedule windows minus buffered busy time
2. Candidate starts on a grid stepping by the slot interval from the start
   of each schedule window
3. Notice, period and booking limit filters per start
4. Seat accounting for seated event types
5. Full-fit check per host, then host qualification
"""

import datetime
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from slotwise.utils.intervals import (
    contains_range,
    intersect_all,
    merge_intervals,
    subtract_intervals,
)
from slotwise.utils.logger import LoggerMixin
from slotwise.models import (
    BusyInterval,
    CandidateSlot,
    EventTypeConstraints,
    ExistingBooking,
    Host,
    Interval,
    PeriodType,
    SchedulingType,
)
from slotwise.processors.host_qualifier import HostQualificationService
from slotwise.processors.limit_processor import LimitProcessor, LimitUsage
from slotwise.services.busy_times import BusyTimeAggregator


def add_business_days(day: datetime.date, count: int) -> datetime.date:
    """Move forward `count` weekdays (Mon-Fri) from `day`."""
    current = day
    added = 0
    while added < count:
        current += datetime.timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


class SlotGenerator(LoggerMixin):
    """Generates candidate slots for one availability request."""

    def free_windows(
        self,
        schedule_windows: List[Interval],
        busy_times: List[BusyInterval],
        constraints: EventTypeConstraints,
    ) -> List[Interval]:
        """Schedule windows minus buffered busy intervals."""
        buffered = BusyTimeAggregator.apply_buffers(busy_times, constraints.buffer_before, constraints.buffer_after)
        return subtract_intervals(merge_intervals(schedule_windows), buffered)

    def grid_starts(
        self,
        constraints: EventTypeConstraints,
        schedule_windows: Dict[str, List[Interval]],
        scheduling_type: SchedulingType,
    ) -> List[datetime.datetime]:
        """
        Candidate starts before any filtering.

        Collective events step through the intersection of all hosts'
        schedule windows; round-robin events step through each host's own
        windows and take the union.
        """
        if scheduling_type == SchedulingType.COLLECTIVE:
            window_sets = [intersect_all(list(schedule_windows.values()))]
        else:
            window_sets = [merge_intervals(windows) for windows in schedule_windows.values()]

        duration = constraints.duration
        step = constraints.step
        starts: Set[datetime.datetime] = set()
        for windows in window_sets:
            for window in windows:
                cursor = window.start
                while cursor + duration <= window.end:
                    starts.add(cursor)
                    cursor += step
        return sorted(starts)

    def eligible_starts(
        self,
        constraints: EventTypeConstraints,
        schedule_windows: Dict[str, List[Interval]],
        scheduling_type: SchedulingType,
        now: datetime.datetime,
        booker_tz,
    ) -> List[datetime.datetime]:
        """Grid starts that pass the notice and period filters."""
        earliest = now + datetime.timedelta(minutes=constraints.minimum_notice_minutes)
        return [
            start for start in self.grid_starts(constraints, schedule_windows, scheduling_type)
            if start >= earliest and self.within_period(start, constraints, now, booker_tz)
        ]

    @staticmethod
    def within_period(start: datetime.datetime, constraints: EventTypeConstraints,
                      now: datetime.datetime, booker_tz) -> bool:
        """Apply the rolling/range booking window in the booker's timezone."""
        if constraints.period_type == PeriodType.UNLIMITED:
            return True
        local_day = start.astimezone(booker_tz).date()
        if constraints.period_type == PeriodType.RANGE:
            return constraints.period_start_date <= local_day <= constraints.period_end_date
        today = now.astimezone(booker_tz).date()
        if constraints.period_count_calendar_days:
            last_day = today + datetime.timedelta(days=constraints.period_days)
        else:
            last_day = add_business_days(today, constraints.period_days)
        return local_day <= last_day

    def generate(
        self,
        constraints: EventTypeConstraints,
        schedule_windows: Dict[str, List[Interval]],
        busy_times: Dict[str, List[BusyInterval]],
        hosts: List[Host],
        scheduling_type: SchedulingType,
        qualifier: HostQualificationService,
        now: datetime.datetime,
        booker_tz,
        bucket_usage: Optional[LimitUsage] = None,
        seated_bookings: Optional[Iterable[ExistingBooking]] = None,
        previous_host_id: Optional[str] = None,
    ) -> List[CandidateSlot]:
        """
        Generate ordered slots for one request.

        Args:
            constraints: Event type policy
            schedule_windows: Host id -> merged schedule windows (instants)
            busy_times: Host id -> merged, unbuffered busy intervals
            hosts: Hosts of the event type
            scheduling_type: collective or round_robin
            qualifier: Host qualification service for this request
            now: Current instant (timezone-aware)
            booker_tz: Booker timezone, for period and per-day trimming
            bucket_usage: Loaded booking limit usage
            seated_bookings: Bookings of this seated event type
            previous_host_id: Host of the booking being rescheduled

        Returns:
            Slots in ascending start order, ties by lowest host id
        """
        free_by_host = {
            host.user_id: self.free_windows(
                schedule_windows.get(host.user_id, []),
                busy_times.get(host.user_id, []),
                constraints,
            )
            for host in hosts
        }

        seat_counts, seat_hosts, seat_blocks = self._seat_usage(seated_bookings or [])

        slots: List[CandidateSlot] = []
        for start in self.eligible_starts(constraints, schedule_windows, scheduling_type, now, booker_tz):
            end = start + constraints.duration

            if bucket_usage is not None and not LimitProcessor.is_within_limits(start, constraints, bucket_usage):
                continue

            remaining_seats = None
            if constraints.is_seated:
                remaining_seats = constraints.seats_per_slot - seat_counts.get(start, 0)
                if remaining_seats <= 0:
                    continue

            free_ids = set()
            for host in hosts:
                if not contains_range(free_by_host[host.user_id], start, end):
                    continue
                if any(b.start != start and b.start < end and b.end > start for b in seat_blocks.get(host.user_id, [])):
                    continue
                free_ids.add(host.user_id)

            # Attendees join the host already running a seated slot
            if start in seat_hosts and scheduling_type == SchedulingType.ROUND_ROBIN:
                fixed_ids = {host.user_id for host in hosts if host.is_fixed}
                free_ids &= seat_hosts[start] | fixed_ids

            qualified = qualifier.qualify(start, hosts, free_ids, scheduling_type, previous_host_id)
            if not qualified:
                continue
            slots.append(CandidateSlot(start, end, qualified, remaining_seats))

        if constraints.only_show_first_slot_per_day:
            slots = self._first_per_day(slots, booker_tz)

        slots.sort(key=lambda s: s.sort_key())
        self.logger.debug(f"Generated {len(slots)} slots for {len(hosts)} hosts")
        return slots

    @staticmethod
    def _seat_usage(bookings: Iterable[ExistingBooking]):
        """Seats taken and hosting hosts per slot start, plus seated intervals per host."""
        counted: Dict[str, ExistingBooking] = {}
        seat_hosts: Dict[datetime.datetime, Set[str]] = defaultdict(set)
        seat_blocks: Dict[str, List[ExistingBooking]] = defaultdict(list)
        for booking in bookings:
            if not booking.blocks_time:
                continue
            seat_hosts[booking.start].add(booking.host_id)
            seat_blocks[booking.host_id].append(booking)
            # A booking shared by several hosts is stored once per host
            counted.setdefault(booking.uid, booking)

        seat_counts: Dict[datetime.datetime, int] = defaultdict(int)
        for booking in counted.values():
            seat_counts[booking.start] += booking.seats_taken
        return dict(seat_counts), dict(seat_hosts), dict(seat_blocks)

    @staticmethod
    def _first_per_day(slots: List[CandidateSlot], booker_tz) -> List[CandidateSlot]:
        first: Dict[datetime.date, CandidateSlot] = {}
        for slot in sorted(slots, key=lambda s: s.sort_key()):
            first.setdefault(slot.start.astimezone(booker_tz).date(), slot)
        return list(first.values())
