# File: slotwise/utils/buckets.py
"""
Calendar bucket keys for booking limits.

day "2025-01-06", ISO week "2025-W02", month "2025-01", year "2025",
all computed in a given timezone.
"""

import datetime

from slotwise.models import LimitGranularity


def bucket_key(instant: datetime.datetime, granularity: LimitGranularity, tz) -> str:
    """Key of the bucket containing `instant`, evaluated in `tz`."""
    local = instant.astimezone(tz)
    if granularity == LimitGranularity.DAY:
        return local.strftime("%Y-%m-%d")
    if granularity == LimitGranularity.WEEK:
        year, week, _ = local.isocalendar()
        return f"{year}-W{week:02d}"
    if granularity == LimitGranularity.MONTH:
        return local.strftime("%Y-%m")
    return local.strftime("%Y")
