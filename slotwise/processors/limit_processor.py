# File: slotwise/processors/limit_processor.py
"""
Booking limit enforcement.

Confirmed booking counts (and booked minutes) are read per calendar bucket
before slots are generated. These reads are mandatory: a failed or late read
aborts the request, because offering a slot that breaks a limit is worse than
offering none.
"""

import datetime
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set, Tuple

from slotwise.core.config_manager import Config
from slotwise.core.errors import DeadlineExceededError, DependencyError
from slotwise.utils.buckets import bucket_key
from slotwise.utils.deadline import Deadline
from slotwise.utils.logger import setup_logger
from slotwise.models import EventTypeConstraints, LimitGranularity, get_timezone
from slotwise.services.repositories import BookingCountRepository

logger = setup_logger(__name__)

BucketRef = Tuple[LimitGranularity, str]


@dataclass
class LimitUsage:
    """Confirmed usage per bucket, evaluated in one timezone."""
    timezone: str = "UTC"
    counts: Dict[BucketRef, int] = field(default_factory=dict)
    minutes: Dict[BucketRef, int] = field(default_factory=dict)


class LimitProcessor:
    """Loads bucket usage and checks candidate slots against limits."""

    def __init__(self, booking_count_repository: Optional[BookingCountRepository], max_workers: int = None):
        self.repository = booking_count_repository
        self.max_workers = max_workers or Config.MAX_FETCH_WORKERS

    def load_usage(
        self,
        event_type_id: str,
        constraints: EventTypeConstraints,
        slot_starts: Iterable[datetime.datetime],
        timezone: str,
        deadline: Optional[Deadline] = None,
    ) -> LimitUsage:
        """
        Read usage for every bucket touched by the candidate starts.

        Args:
            event_type_id: Event type whose bookings are counted
            constraints: Event type limits
            slot_starts: Candidate slot starts
            timezone: Timezone the buckets are evaluated in
            deadline: Request deadline

        Returns:
            LimitUsage with counts and booked minutes per bucket

        Raises:
            DependencyError: A read failed or no repository is configured
            DeadlineExceededError: Reads did not finish before the deadline
        """
        usage = LimitUsage(timezone=timezone)
        if not constraints.has_limits:
            return usage
        if self.repository is None:
            raise DependencyError("Booking limits are set but no booking count repository is configured")

        tz = get_timezone(timezone)
        count_buckets: Set[BucketRef] = set()
        minute_buckets: Set[BucketRef] = set()
        for start in slot_starts:
            for granularity in constraints.booking_limits:
                count_buckets.add((granularity, bucket_key(start, granularity, tz)))
            for granularity in constraints.duration_limits:
                minute_buckets.add((granularity, bucket_key(start, granularity, tz)))

        reads = [('count', ref) for ref in sorted(count_buckets, key=lambda r: (r[0].value, r[1]))]
        reads += [('minutes', ref) for ref in sorted(minute_buckets, key=lambda r: (r[0].value, r[1]))]
        if not reads:
            return usage

        if deadline is not None:
            deadline.check("booking limit reads")

        executor = ThreadPoolExecutor(max_workers=min(len(reads), self.max_workers),
                                      thread_name_prefix="limits")
        try:
            futures = {}
            for kind, (granularity, key) in reads:
                method = (self.repository.count_in_bucket if kind == 'count'
                          else self.repository.sum_duration_in_bucket)
                future = executor.submit(method, event_type_id, granularity, key, timezone=timezone)
                futures[future] = (kind, (granularity, key))

            timeout = deadline.remaining() if deadline is not None else None
            done, not_done = wait(futures, timeout=timeout)
            if not_done:
                for future in not_done:
                    future.cancel()
                raise DeadlineExceededError(
                    f"{len(not_done)} booking limit reads still pending at the deadline"
                )

            for future, (kind, ref) in futures.items():
                try:
                    value = int(future.result())
                except Exception as e:
                    logger.error(f"Booking limit read failed for {ref[0].value} bucket {ref[1]}: {e}")
                    raise DependencyError(f"Could not read booking usage for {ref[0].value} {ref[1]}") from e
                if kind == 'count':
                    usage.counts[ref] = value
                else:
                    usage.minutes[ref] = value
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug(f"Loaded usage for {len(reads)} buckets of event type {event_type_id}")
        return usage

    @staticmethod
    def is_within_limits(start: datetime.datetime, constraints: EventTypeConstraints, usage: LimitUsage) -> bool:
        """
        True if a booking at `start` keeps every bucket within its limits.

        A count bucket that reached its max emits nothing; a duration bucket
        rejects the slot when the event would push it past the cap.
        """
        if not constraints.has_limits:
            return True
        tz = get_timezone(usage.timezone)
        for granularity, maximum in constraints.booking_limits.items():
            ref = (granularity, bucket_key(start, granularity, tz))
            if usage.counts.get(ref, 0) >= maximum:
                return False
        for granularity, cap in constraints.duration_limits.items():
            ref = (granularity, bucket_key(start, granularity, tz))
            if usage.minutes.get(ref, 0) + constraints.duration_minutes > cap:
                return False
        return True
