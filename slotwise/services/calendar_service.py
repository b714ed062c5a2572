# File: slotwise/services/calendar_service.py

import datetime
import socket
from typing import Callable, List, Optional
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from slotwise.core.errors import ProviderError
from slotwise.utils.logger import setup_logger
from slotwise.models import BusyInterval, BusySource, CalendarCredential, CalendarProvider
from slotwise.services.provider_registry import CalendarBusyTimeProvider

logger = setup_logger(__name__)


class GoogleCalendarBusyProvider(CalendarBusyTimeProvider):
    """Reads busy times through the Google Calendar free/busy API."""

    provider = CalendarProvider.GOOGLE

    def __init__(self, service_builder: Callable[..., Resource]):
        """
        Initialize the Google provider.

        Args:
            service_builder: Called as service_builder(credential, timeout=seconds);
                returns an authenticated Calendar API resource whose HTTP
                calls honour the timeout (see slotwise.auth.google_auth)
        """
        self.service_builder = service_builder

    def fetch_busy(
        self,
        credential: CalendarCredential,
        start: datetime.datetime,
        end: datetime.datetime,
        timeout: float,
    ) -> List[BusyInterval]:
        """
        Query free/busy for the credential's calendar.

        `timeout` bounds each HTTP call of the client built for this fetch.
        """
        calendar_id = credential.external_id or 'primary'
        logger.debug(f"Google free/busy for {credential.id} ({calendar_id}) {start.isoformat()} - {end.isoformat()}")

        try:
            service = self.service_builder(credential, timeout=timeout)
            result = service.freebusy().query(body={
                'timeMin': start.isoformat(),
                'timeMax': end.isoformat(),
                'items': [{'id': calendar_id}],
            }).execute()
        except HttpError as e:
            raise ProviderError(f"Google free/busy failed for {credential.id}: {e}", credential.id) from e
        except socket.timeout as e:
            raise ProviderError(f"Google free/busy timed out after {timeout}s for {credential.id}", credential.id) from e

        calendar = result.get('calendars', {}).get(calendar_id)
        if calendar is None:
            raise ProviderError(f"Google returned no calendar {calendar_id} for {credential.id}", credential.id)
        if calendar.get('errors'):
            reasons = ", ".join(err.get('reason', 'unknown') for err in calendar['errors'])
            raise ProviderError(f"Google free/busy errors for {credential.id}: {reasons}", credential.id)

        intervals = []
        for raw in calendar.get('busy', []):
            start_dt = self._parse_gc_time(raw.get('start'))
            end_dt = self._parse_gc_time(raw.get('end'))
            if start_dt is None or end_dt is None or end_dt <= start_dt:
                logger.warning(f"Skipping malformed busy block from Google for {credential.id}: {raw}")
                continue
            intervals.append(BusyInterval(start_dt, end_dt, BusySource.CALENDAR))

        logger.debug(f"Google returned {len(intervals)} busy blocks for {credential.id}")
        return intervals

    def _parse_gc_time(self, time_str: str) -> Optional[datetime.datetime]:
        """Helper to safely parse Google Calendar date/dateTime strings."""
        if not time_str:
            return None
        try:
            # Full ISO format with time and timezone
            parsed = datetime.datetime.fromisoformat(time_str.replace('Z', '+00:00'))
        except ValueError:
            try:
                # Date-only format (all-day blocks, treat as midnight UTC)
                date_obj = datetime.datetime.strptime(time_str, "%Y-%m-%d").date()
                return datetime.datetime.combine(date_obj, datetime.time.min).replace(
                    tzinfo=datetime.timezone.utc
                )
            except ValueError:
                return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.timezone.utc)
        return parsed
