# File: slotwise/processors/schedule_resolver.py
"""
Schedule resolution module.
Turns weekly rules and date overrides into concrete working windows in the
booker's timezone.
"""

import datetime
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from slotwise.core.config_manager import Config
from slotwise.utils.logger import setup_logger
from slotwise.utils.intervals import merge_intervals, split_at_midnight
from slotwise.models import Host, Interval, Schedule, default_schedule, get_timezone
from slotwise.models.common import localize
from slotwise.models.schedule import window_minutes

logger = setup_logger(__name__)


class ScheduleResolver:
    """Resolves host schedules into per-day working windows."""

    def __init__(
        self,
        schedule_repository=None,
        default_days: Iterable[int] = None,
        default_start: str = None,
        default_end: str = None,
    ):
        """
        Initialize schedule resolver.

        Args:
            schedule_repository: ScheduleRepository used by get_schedule
            default_days: Weekdays of the fallback schedule (0 = Sunday)
            default_start: Fallback working day start ("HH:MM")
            default_end: Fallback working day end ("HH:MM")
        """
        self.repository = schedule_repository
        self.default_days = list(default_days if default_days is not None else Config.DEFAULT_WORKING_DAYS)
        self.default_start = default_start or Config.DEFAULT_WORKING_START
        self.default_end = default_end or Config.DEFAULT_WORKING_END

    def get_schedule(self, host: Host) -> Schedule:
        """
        Load a host's schedule, falling back to the default working hours.

        A missing schedule is not an error: the host is treated as working the
        configured default days and hours in their own timezone.
        """
        schedule = self.repository.get_by_host_id(host.user_id) if self.repository else None
        if schedule is not None:
            return schedule

        logger.info(
            f"No schedule for host {host.user_id}, using default "
            f"{self.default_start}-{self.default_end} ({host.timezone})"
        )
        return default_schedule(
            host.user_id, host.timezone, self.default_days, self.default_start, self.default_end
        )

    def resolve(
        self,
        schedule: Schedule,
        date_from: datetime.date,
        date_to: datetime.date,
        booker_timezone: str,
        duration_minutes: int = 0,
    ) -> Dict[datetime.date, List[Interval]]:
        """
        Resolve working windows for every booker-local date in [date_from, date_to).

        Windows are expressed in the booker's timezone and never cross a
        booker-local midnight. Windows shorter than the event duration are
        dropped unless they touch midnight, where they may continue into the
        neighbouring day.

        Args:
            schedule: Host schedule (weekly rules + overrides)
            date_from: First booker-local date (inclusive)
            date_to: Last booker-local date (exclusive)
            booker_timezone: Booker's timezone name
            duration_minutes: Event duration

        Returns:
            Mapping of date -> sorted list of windows
        """
        booker_tz = get_timezone(booker_timezone)
        windows = self.resolve_intervals(schedule, date_from, date_to, booker_timezone)
        min_length = datetime.timedelta(minutes=duration_minutes)

        by_date: Dict[datetime.date, List[Interval]] = defaultdict(list)
        for window in windows:
            for piece in split_at_midnight(window, booker_tz):
                local = Interval(piece.start.astimezone(booker_tz), piece.end.astimezone(booker_tz))
                if local.end - local.start < min_length and not self._touches_midnight(local, booker_tz):
                    continue
                by_date[local.start.date()].append(local)

        result: Dict[datetime.date, List[Interval]] = {}
        day = date_from
        while day < date_to:
            result[day] = sorted(by_date.get(day, []))
            day += datetime.timedelta(days=1)
        return result

    def resolve_intervals(
        self,
        schedule: Schedule,
        date_from: datetime.date,
        date_to: datetime.date,
        booker_timezone: str,
    ) -> List[Interval]:
        """
        Resolve working windows as one merged list clipped to the booker's range.

        Unlike resolve(), windows are not split at midnight, so a shift that
        runs past the booker's midnight stays one continuous window.
        """
        booker_tz = get_timezone(booker_timezone)
        host_tz = get_timezone(schedule.timezone)

        range_start = localize(booker_tz, datetime.datetime.combine(date_from, datetime.time.min))
        range_end = localize(booker_tz, datetime.datetime.combine(date_to, datetime.time.min))

        # Scan one extra schedule-local day on each side to catch offset shifts
        host_day = range_start.astimezone(host_tz).date() - datetime.timedelta(days=1)
        last_host_day = range_end.astimezone(host_tz).date()

        windows: List[Interval] = []
        while host_day <= last_host_day:
            for local_window in schedule.windows_for(host_day):
                window = self._to_instant_window(host_tz, host_day, local_window)
                if window is None:
                    continue
                start = max(window.start, range_start)
                end = min(window.end, range_end)
                if start < end:
                    windows.append(Interval(start, end))
            host_day += datetime.timedelta(days=1)

        return merge_intervals(windows)

    def _to_instant_window(self, host_tz, day: datetime.date, local_window) -> Optional[Interval]:
        """Localize a wall-clock window on a schedule-local date."""
        start_min, end_min = window_minutes(local_window)
        midnight = datetime.datetime.combine(day, datetime.time.min)
        start = localize(host_tz, midnight + datetime.timedelta(minutes=start_min))
        if end_min == 24 * 60:
            end = localize(host_tz, datetime.datetime.combine(day + datetime.timedelta(days=1), datetime.time.min))
        else:
            end = localize(host_tz, midnight + datetime.timedelta(minutes=end_min))
        if end <= start:
            # A DST jump swallowed the whole window
            logger.debug(f"Skipping empty window {local_window} on {day} ({host_tz})")
            return None
        return Interval(start, end)

    @staticmethod
    def _touches_midnight(window: Interval, tz) -> bool:
        start_local = window.start.astimezone(tz)
        end_local = window.end.astimezone(tz)
        return start_local.time() == datetime.time.min or end_local.time() == datetime.time.min
