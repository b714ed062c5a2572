# File: slotwise/services/busy_time_cache.py
"""
Read-through cache for raw provider busy times.

Entries are keyed by (host_id, credential_id, day_bucket) and hold the
unbuffered intervals a provider returned for that UTC day. Expired entries
are never served; writes overwrite whole keys so concurrent re-fetches of the
same key are harmless.
"""

import datetime
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from slotwise.core.config_manager import Config
from slotwise.utils.logger import setup_logger
from slotwise.models import BusyInterval

logger = setup_logger(__name__)

CacheKey = Tuple[str, str, datetime.date]


@dataclass(frozen=True)
class BusyTimeCacheEntry:
    intervals: Tuple[BusyInterval, ...]
    expires_at: float


class BusyTimeCache:
    """
    TTL-bounded busy-time cache, safe for concurrent readers and writers.

    Eviction: expired entries are dropped when read or when the cache is
    full; beyond `max_entries` the oldest written entries go first.
    """

    def __init__(
        self,
        ttl_seconds: float = None,
        max_entries: int = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = Config.BUSY_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_entries = max_entries or Config.BUSY_CACHE_MAX_ENTRIES
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, BusyTimeCacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, host_id: str, credential_id: str, day: datetime.date) -> Optional[List[BusyInterval]]:
        """Return cached intervals for one day bucket, or None on miss/expiry."""
        key = (host_id, credential_id, day)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at <= now:
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return list(entry.intervals)

    def get_range(self, host_id: str, credential_id: str,
                  days: List[datetime.date]) -> Tuple[Dict[datetime.date, List[BusyInterval]], List[datetime.date]]:
        """
        Look up several day buckets at once.

        Returns:
            Tuple of (cached intervals by day, days that missed)
        """
        found: Dict[datetime.date, List[BusyInterval]] = {}
        missing: List[datetime.date] = []
        for day in days:
            cached = self.get(host_id, credential_id, day)
            if cached is None:
                missing.append(day)
            else:
                found[day] = cached
        return found, missing

    def put(self, host_id: str, credential_id: str, day: datetime.date,
            intervals: List[BusyInterval]) -> None:
        """Store one day bucket, replacing any previous value for the key."""
        if self.ttl_seconds <= 0:
            return
        key = (host_id, credential_id, day)
        entry = BusyTimeCacheEntry(tuple(intervals), self._clock() + self.ttl_seconds)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            self._evict()

    def put_range(self, host_id: str, credential_id: str, days: List[datetime.date],
                  intervals: List[BusyInterval]) -> None:
        """Split fetched intervals into UTC day buckets and store each day (empty days included)."""
        for day in days:
            day_start = datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.timezone.utc)
            day_end = day_start + datetime.timedelta(days=1)
            in_day = [i for i in intervals if i.overlaps_with(day_start, day_end)]
            self.put(host_id, credential_id, day, in_day)

    def invalidate(self, host_id: str, credential_id: Optional[str] = None) -> int:
        """Drop every entry of a host (optionally only one credential)."""
        with self._lock:
            doomed = [
                k for k in self._entries
                if k[0] == host_id and (credential_id is None or k[1] == credential_id)
            ]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} busy-time cache entries for host {host_id}")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self) -> None:
        # Caller holds the lock
        if len(self._entries) <= self.max_entries:
            return
        now = self._clock()
        for key in [k for k, e in self._entries.items() if e.expires_at <= now]:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
