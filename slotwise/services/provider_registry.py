# File: slotwise/services/provider_registry.py

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from slotwise.utils.logger import setup_logger
from slotwise.models import BusyInterval, CalendarCredential, CalendarProvider

logger = setup_logger(__name__)


class CalendarBusyTimeProvider(ABC):
    """Capability interface: one implementation per calendar integration."""

    provider: CalendarProvider

    @abstractmethod
    def fetch_busy(
        self,
        credential: CalendarCredential,
        start: datetime,
        end: datetime,
        timeout: float,
    ) -> List[BusyInterval]:
        """
        Return raw busy intervals for one credential.

        Args:
            credential: Connected calendar to query
            start: Beginning of the window (timezone-aware)
            end: End of the window (timezone-aware)
            timeout: Seconds the call may take

        Raises:
            ProviderError: If the provider could not answer
        """


class CalendarProviderRegistry:
    """Maps a CalendarProvider kind to its busy-time implementation."""

    def __init__(self, providers: Optional[List[CalendarBusyTimeProvider]] = None):
        self._providers: Dict[CalendarProvider, CalendarBusyTimeProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: CalendarBusyTimeProvider,
                 kind: Optional[CalendarProvider] = None) -> None:
        kind = kind or provider.provider
        if kind in self._providers:
            logger.warning(f"Replacing registered provider for {kind.value}")
        self._providers[kind] = provider
        logger.debug(f"Registered busy-time provider for {kind.value}")

    def get(self, kind: CalendarProvider) -> Optional[CalendarBusyTimeProvider]:
        return self._providers.get(kind)

    def kinds(self) -> List[CalendarProvider]:
        return sorted(self._providers, key=lambda k: k.value)

    def __contains__(self, kind: CalendarProvider) -> bool:
        return kind in self._providers
