# File: slotwise/utils/intervals.py
"""
Interval algebra on half-open [start, end) ranges.

All functions accept any objects with timezone-aware `start`/`end` and
return new, sorted lists; inputs are never mutated.
"""

import datetime
from typing import Iterable, List, Sequence

from slotwise.models.calendar import BusyInterval
from slotwise.models.common import Interval, localize


def merge_intervals(intervals: Iterable) -> List[Interval]:
    """
    Coalesce overlapping or touching ranges into a minimal sorted set.

    Single sweep after an O(n log n) sort; a range starting exactly where the
    previous one ends is merged into it.
    """
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    merged: List[Interval] = []
    for item in ordered:
        if merged and item.start <= merged[-1].end:
            if item.end > merged[-1].end:
                merged[-1] = Interval(merged[-1].start, item.end)
        else:
            merged.append(Interval(item.start, item.end))
    return merged


def merge_busy_intervals(intervals: Iterable[BusyInterval]) -> List[BusyInterval]:
    """Same sweep as merge_intervals, keeping BusyInterval objects.

    A merged interval keeps the source of its earliest member.
    """
    ordered = sorted(intervals, key=lambda i: (i.start, i.end))
    merged: List[BusyInterval] = []
    for item in ordered:
        if merged and item.start <= merged[-1].end:
            if item.end > merged[-1].end:
                merged[-1] = BusyInterval(merged[-1].start, item.end, merged[-1].source)
        else:
            merged.append(item)
    return merged


def pad_intervals(intervals: Iterable[BusyInterval],
                  before: datetime.timedelta,
                  after: datetime.timedelta) -> List[BusyInterval]:
    """Extend each busy interval by `before` ahead of it and `after` behind it, then re-merge."""
    padded = [BusyInterval(i.start - before, i.end + after, i.source) for i in intervals]
    return merge_busy_intervals(padded)


def subtract_intervals(windows: Iterable, busy: Sequence) -> List[Interval]:
    """
    Remove every busy range from the windows, splitting windows as needed.

    `busy` should be merged (sorted, non-overlapping); the result is sorted.
    """
    busy_sorted = sorted(busy, key=lambda b: b.start)
    result: List[Interval] = []
    for window in sorted(windows, key=lambda w: w.start):
        cursor = window.start
        for b in busy_sorted:
            if b.end <= cursor:
                continue
            if b.start >= window.end:
                break
            if b.start > cursor:
                result.append(Interval(cursor, b.start))
            cursor = max(cursor, b.end)
            if cursor >= window.end:
                break
        if cursor < window.end:
            result.append(Interval(cursor, window.end))
    return result


def intersect_intervals(first: Sequence, second: Sequence) -> List[Interval]:
    """Two-pointer intersection of two merged interval lists."""
    a = merge_intervals(first)
    b = merge_intervals(second)
    result: List[Interval] = []
    i = j = 0
    while i < len(a) and j < len(b):
        start = max(a[i].start, b[j].start)
        end = min(a[i].end, b[j].end)
        if start < end:
            result.append(Interval(start, end))
        if a[i].end < b[j].end:
            i += 1
        else:
            j += 1
    return result


def intersect_all(interval_sets: Sequence[Sequence]) -> List[Interval]:
    """Intersection across any number of interval lists; empty input -> []."""
    if not interval_sets:
        return []
    result = merge_intervals(interval_sets[0])
    for other in interval_sets[1:]:
        result = intersect_intervals(result, other)
        if not result:
            break
    return result


def contains_range(windows: Sequence, start: datetime.datetime, end: datetime.datetime) -> bool:
    """True if [start, end) lies entirely inside one of the (merged) windows."""
    for window in windows:
        if window.start <= start and end <= window.end:
            return True
        if window.start > start:
            break
    return False


def split_at_midnight(interval: Interval, tz) -> List[Interval]:
    """Split a range into pieces that each fall on one local calendar day of `tz`."""
    pieces: List[Interval] = []
    cursor = interval.start
    while cursor < interval.end:
        local = cursor.astimezone(tz)
        next_midnight = localize(
            tz,
            datetime.datetime.combine(local.date() + datetime.timedelta(days=1), datetime.time.min),
        )
        piece_end = min(next_midnight, interval.end)
        pieces.append(Interval(cursor, piece_end))
        cursor = piece_end
    return pieces
