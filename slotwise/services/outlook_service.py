# File: slotwise/services/outlook_service.py

import datetime
from typing import List, Optional

import requests

from slotwise.core.config_manager import Config
from slotwise.core.errors import ProviderError
from slotwise.utils.logger import setup_logger
from slotwise.models import BusyInterval, BusySource, CalendarCredential, CalendarProvider
from slotwise.services.provider_registry import CalendarBusyTimeProvider

logger = setup_logger(__name__)

# getSchedule statuses that make a host unavailable
BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}


class OutlookBusyProvider(CalendarBusyTimeProvider):
    """Reads busy times through Microsoft Graph calendar/getSchedule."""

    provider = CalendarProvider.OUTLOOK

    def __init__(self, session: Optional[requests.Session] = None, api_url: str = None):
        self.session = session or requests.Session()
        self.api_url = (api_url or Config.GRAPH_API_URL).rstrip('/')

    def fetch_busy(
        self,
        credential: CalendarCredential,
        start: datetime.datetime,
        end: datetime.datetime,
        timeout: float,
    ) -> List[BusyInterval]:
        if not credential.access_token:
            raise ProviderError(f"No access token for Outlook credential {credential.id}", credential.id)

        payload = {
            "schedules": [credential.external_id],
            "startTime": {"dateTime": self._utc_naive(start), "timeZone": "UTC"},
            "endTime": {"dateTime": self._utc_naive(end), "timeZone": "UTC"},
            "availabilityViewInterval": 15,
        }
        headers = {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

        try:
            response = self.session.post(
                f"{self.api_url}/me/calendar/getSchedule",
                headers=headers,
                json=payload,
                timeout=timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            raise ProviderError(f"Outlook getSchedule timed out for {credential.id}", credential.id) from e
        except requests.RequestException as e:
            raise ProviderError(f"Outlook getSchedule failed for {credential.id}: {e}", credential.id) from e
        except ValueError as e:
            raise ProviderError(f"Outlook returned invalid JSON for {credential.id}", credential.id) from e

        intervals = []
        for schedule in data.get("value", []):
            if schedule.get("error"):
                message = schedule["error"].get("message", "unknown error")
                raise ProviderError(f"Outlook schedule error for {credential.id}: {message}", credential.id)
            for item in schedule.get("scheduleItems", []):
                if str(item.get("status", "busy")).lower() not in BUSY_STATUSES:
                    continue
                item_start = self._parse_graph_time(item.get("start"))
                item_end = self._parse_graph_time(item.get("end"))
                if item_start is None or item_end is None or item_end <= item_start:
                    logger.warning(f"Skipping malformed schedule item for {credential.id}: {item}")
                    continue
                intervals.append(BusyInterval(item_start, item_end, BusySource.CALENDAR))

        logger.debug(f"Outlook returned {len(intervals)} busy blocks for {credential.id}")
        return intervals

    @staticmethod
    def _utc_naive(value: datetime.datetime) -> str:
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None).isoformat()

    @staticmethod
    def _parse_graph_time(raw: Optional[dict]) -> Optional[datetime.datetime]:
        """Graph returns {'dateTime': '2025-01-06T10:00:00.0000000', 'timeZone': 'UTC'}."""
        if not raw or not raw.get("dateTime"):
            return None
        value = raw["dateTime"]
        # Graph uses 7 fractional digits; fromisoformat accepts at most 6
        if '.' in value:
            head, fraction = value.split('.', 1)
            value = f"{head}.{fraction[:6]}"
        try:
            parsed = datetime.datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.timezone.utc)
        return parsed
