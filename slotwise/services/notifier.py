# File: slotwise/services/notifier.py

from abc import ABC, abstractmethod
from typing import Any, Dict

from slotwise.utils.logger import setup_logger

logger = setup_logger(__name__)


class NoSlotsNotifier(ABC):
    """Side-effect hook fired when a request yields no slots at all."""

    @abstractmethod
    def notify(self, event_details: Dict[str, Any]) -> None:
        """
        Args:
            event_details: eventTypeId, hostIds, startTime, endTime and
                visitorTimezone of the empty request
        """


class LoggingNoSlotsNotifier(NoSlotsNotifier):
    """Default notifier: records the empty result in the log."""

    def notify(self, event_details: Dict[str, Any]) -> None:
        logger.info(
            f"No slots for event type {event_details.get('eventTypeId')} "
            f"between {event_details.get('startTime')} and {event_details.get('endTime')} "
            f"(hosts: {', '.join(event_details.get('hostIds', []))})"
        )
