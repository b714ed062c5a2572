# File: slotwise/services/busy_times.py
"""
Busy-time aggregation.

Fans out to every calendar credential of a host, adds the host's existing
bookings and merges everything into a minimal sorted interval list. Calendar
providers are best effort: one that fails or is too slow is left out with a
warning, so a broken external calendar never blocks a host's bookings.
Existing bookings are always included.
"""

import datetime
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Tuple

from slotwise.core.config_manager import Config
from slotwise.core.errors import ProviderError
from slotwise.utils.deadline import Deadline
from slotwise.utils.intervals import merge_busy_intervals, pad_intervals
from slotwise.utils.logger import setup_logger
from slotwise.models import BusyInterval, BusySource, CalendarCredential, ExistingBooking
from slotwise.services.busy_time_cache import BusyTimeCache
from slotwise.services.provider_registry import CalendarProviderRegistry
from slotwise.services.repositories import BookingRepository

logger = setup_logger(__name__)


def utc_days(start: datetime.datetime, end: datetime.datetime) -> List[datetime.date]:
    """UTC calendar days touched by [start, end)."""
    first = start.astimezone(datetime.timezone.utc).date()
    last = (end - datetime.timedelta(microseconds=1)).astimezone(datetime.timezone.utc).date()
    days = []
    day = first
    while day <= last:
        days.append(day)
        day += datetime.timedelta(days=1)
    return days


def _day_start(day: datetime.date) -> datetime.datetime:
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.timezone.utc)


class BusyTimeAggregator:
    """Collects and merges busy times for one host at a time."""

    def __init__(
        self,
        registry: CalendarProviderRegistry,
        booking_repository: Optional[BookingRepository] = None,
        cache: Optional[BusyTimeCache] = None,
        provider_timeout: float = None,
        max_workers: int = None,
    ):
        """
        Initialize busy-time aggregator.

        Args:
            registry: Provider lookup by calendar kind
            booking_repository: Source of existing bookings
            cache: Shared busy-time cache (None disables caching)
            provider_timeout: Seconds allowed per credential fetch
            max_workers: Upper bound for the per-host worker pool
        """
        self.registry = registry
        self.bookings = booking_repository
        self.cache = cache
        self.provider_timeout = provider_timeout or Config.PROVIDER_TIMEOUT_SECONDS
        self.max_workers = max_workers or Config.MAX_FETCH_WORKERS

    def get_busy_times(
        self,
        host_id: str,
        credentials: List[CalendarCredential],
        start: datetime.datetime,
        end: datetime.datetime,
        deadline: Optional[Deadline] = None,
        seated_event_type_id: Optional[str] = None,
        bookings: Optional[List[ExistingBooking]] = None,
    ) -> List[BusyInterval]:
        """
        Merged, sorted, non-overlapping busy intervals of a host.

        Args:
            host_id: Host to aggregate for
            credentials: The host's connected calendars
            start: Window start (timezone-aware)
            end: Window end (timezone-aware)
            deadline: Request deadline; fetches still running when it expires are dropped
            seated_event_type_id: Bookings of this seated event type share their
                slot and are not treated as busy
            bookings: Bookings already loaded by the caller (read from the
                repository when None)

        Returns:
            Merged BusyInterval list (unbuffered)
        """
        calendar_busy = self.fetch_calendar_busy(host_id, credentials, start, end, deadline)
        booking_busy = self.booking_busy(host_id, start, end, seated_event_type_id, bookings)
        merged = merge_busy_intervals(calendar_busy + booking_busy)
        logger.debug(
            f"Host {host_id}: {len(calendar_busy)} calendar + {len(booking_busy)} booking intervals "
            f"-> {len(merged)} merged"
        )
        return merged

    def booking_busy(
        self,
        host_id: str,
        start: datetime.datetime,
        end: datetime.datetime,
        seated_event_type_id: Optional[str] = None,
        bookings: Optional[List[ExistingBooking]] = None,
    ) -> List[BusyInterval]:
        """Existing accepted/pending bookings as busy intervals. Never degraded."""
        if bookings is None:
            if self.bookings is None:
                return []
            bookings = self.bookings.list_for_host(host_id, start, end)
        busy = []
        for booking in bookings:
            if not booking.blocks_time:
                continue
            if seated_event_type_id is not None and booking.event_type_id == seated_event_type_id:
                continue
            busy.append(BusyInterval(booking.start, booking.end, BusySource.EXISTING_BOOKING))
        return busy

    def fetch_calendar_busy(
        self,
        host_id: str,
        credentials: List[CalendarCredential],
        start: datetime.datetime,
        end: datetime.datetime,
        deadline: Optional[Deadline] = None,
    ) -> List[BusyInterval]:
        """
        Fetch raw provider busy times for all credentials concurrently.

        Fully cached credentials are answered from the cache; the others are
        fetched live for the span of their missing UTC days and written back.
        """
        if not credentials:
            return []

        days = utc_days(start, end)
        collected: List[BusyInterval] = []
        pending: List[Tuple[CalendarCredential, List[datetime.date]]] = []

        for credential in credentials:
            if self.cache is None:
                pending.append((credential, days))
                continue
            found, missing = self.cache.get_range(host_id, credential.id, days)
            for intervals in found.values():
                collected.extend(intervals)
            if missing:
                pending.append((credential, missing))

        if not pending:
            return collected

        timeout = deadline.cap(self.provider_timeout) if deadline else self.provider_timeout
        if timeout <= 0:
            for credential, _ in pending:
                logger.warning(f"Deadline reached before fetching busy times for credential {credential.id} (host {host_id})")
            return collected

        executor = ThreadPoolExecutor(
            max_workers=min(len(pending), self.max_workers),
            thread_name_prefix=f"busy-{host_id}",
        )
        try:
            futures: Dict = {}
            for credential, missing in pending:
                # Whole UTC days, so every cached bucket is complete
                fetch_start = _day_start(missing[0])
                fetch_end = _day_start(missing[-1]) + datetime.timedelta(days=1)
                future = executor.submit(self._fetch_one, credential, fetch_start, fetch_end, timeout)
                futures[future] = (credential, missing)

            done, not_done = wait(futures, timeout=timeout)

            for future, (credential, missing) in futures.items():
                if future in not_done:
                    future.cancel()
                    logger.warning(
                        f"Busy-time fetch timed out after {timeout:.1f}s for credential "
                        f"{credential.id} (host {host_id}); excluding it"
                    )
                    continue
                try:
                    intervals = future.result()
                except Exception as e:
                    logger.warning(
                        f"Busy-time fetch failed for credential {credential.id} (host {host_id}); "
                        f"excluding it: {e}"
                    )
                    continue
                if self.cache is not None:
                    self.cache.put_range(host_id, credential.id, missing, intervals)
                collected.extend(intervals)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return collected

    def _fetch_one(self, credential: CalendarCredential, start: datetime.datetime,
                   end: datetime.datetime, timeout: float) -> List[BusyInterval]:
        provider = self.registry.get(credential.provider)
        if provider is None:
            raise ProviderError(f"No provider registered for {credential.provider.value}", credential.id)
        return provider.fetch_busy(credential, start, end, timeout)

    @staticmethod
    def apply_buffers(intervals: List[BusyInterval], before_minutes: int, after_minutes: int) -> List[BusyInterval]:
        """Pad merged busy intervals with an event type's buffers (never cached)."""
        if not before_minutes and not after_minutes:
            return list(intervals)
        return pad_intervals(
            intervals,
            datetime.timedelta(minutes=before_minutes),
            datetime.timedelta(minutes=after_minutes),
        )
