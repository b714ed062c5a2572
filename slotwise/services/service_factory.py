# File: slotwise/services/service_factory.py

from typing import Callable, Optional

import requests
from googleapiclient.discovery import Resource

from slotwise.utils.logger import setup_logger
from slotwise.services.calendar_service import GoogleCalendarBusyProvider
from slotwise.services.outlook_service import OutlookBusyProvider
from slotwise.services.provider_registry import CalendarProviderRegistry

logger = setup_logger(__name__)


class ServiceFactory:
    """Factory for creating calendar provider instances."""

    @staticmethod
    def create_registry(
        google_service_builder: Optional[Callable[..., Resource]] = None,
        outlook_session: Optional[requests.Session] = None,
        include_google: bool = True,
        include_outlook: bool = True,
    ) -> CalendarProviderRegistry:
        """
        Create a provider registry with the built-in integrations.

        Args:
            google_service_builder: Builds a Calendar API resource per credential
                (default: slotwise.auth.google_auth.build_calendar_service)
            outlook_session: requests session for Microsoft Graph
            include_google: Register the Google Calendar provider
            include_outlook: Register the Outlook provider

        Returns:
            CalendarProviderRegistry
        """
        registry = CalendarProviderRegistry()

        if include_google:
            if google_service_builder is None:
                from slotwise.auth.google_auth import build_calendar_service
                google_service_builder = build_calendar_service
            registry.register(GoogleCalendarBusyProvider(google_service_builder))

        if include_outlook:
            registry.register(OutlookBusyProvider(session=outlook_session))

        logger.debug(f"Provider registry ready: {[k.value for k in registry.kinds()]}")
        return registry
