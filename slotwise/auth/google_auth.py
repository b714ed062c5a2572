# File: slotwise/auth/google_auth.py
"""
Google API authentication module.
Handles the OAuth2 flow and builds Calendar API clients per credential.
"""

from typing import Optional

import httplib2
from google.auth.transport.requests import Request
from google_auth_httplib2 import AuthorizedHttp
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource

from slotwise.core.config_manager import Config
from slotwise.core.errors import ProviderError
from slotwise.utils.logger import setup_logger
from slotwise.models import CalendarCredential

logger = setup_logger(__name__)


def _authenticate() -> Optional[Credentials]:
    """
    Internal helper to load or refresh the stored token.

    Returns:
        Credentials object or None if authentication fails
    """
    creds = None

    if Config.TOKEN_FILE.exists():
        logger.debug(f"Loading existing token from {Config.TOKEN_FILE}")
        creds = Credentials.from_authorized_user_file(
            str(Config.TOKEN_FILE),
            Config.GOOGLE_SCOPES
        )

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logger.info("Refreshing expired credentials")
            try:
                creds.refresh(Request())
            except Exception as e:
                logger.error(f"Error refreshing token: {e}", exc_info=True)
                return None
        else:
            logger.warning("No valid credentials found")
            return None

        logger.debug("Saving refreshed credentials")
        with open(Config.TOKEN_FILE, "w") as token_file:
            token_file.write(creds.to_json())

    return creds


def create_initial_token() -> bool:
    """
    Run the interactive, browser-based auth flow and store token.json.

    Returns:
        True if authentication successful, False otherwise
    """
    logger.info("Starting interactive authentication flow")

    if not Config.CREDENTIALS_FILE.exists():
        logger.error(f"credentials.json not found at {Config.CREDENTIALS_FILE}")
        return False

    try:
        flow = InstalledAppFlow.from_client_secrets_file(
            str(Config.CREDENTIALS_FILE),
            Config.GOOGLE_SCOPES
        )
        creds = flow.run_local_server(port=0)

        with open(Config.TOKEN_FILE, "w") as token_file:
            token_file.write(creds.to_json())

        logger.info(f"Authentication successful! Token saved to {Config.TOKEN_FILE}")
        return True

    except Exception as e:
        logger.error(f"Authentication flow failed: {e}", exc_info=True)
        return False


def build_calendar_service(credential: CalendarCredential, timeout: Optional[float] = None) -> Resource:
    """
    Build a Calendar API client for one connected calendar.

    A credential carrying an access token is used as-is; otherwise the
    locally stored token.json is loaded (and refreshed if needed).
    With a timeout, every HTTP call of the client gives up after that many seconds.

    Raises:
        ProviderError: If no usable Google credentials exist
    """
    if credential.access_token:
        creds = Credentials(token=credential.access_token)
    else:
        creds = _authenticate()
    if creds is None:
        raise ProviderError(
            f"No valid Google credentials for {credential.id}; run scripts/find_slots.py --authorize",
            credential.id,
        )
    # A fresh client per call; httplib2 connections are not thread-safe
    if timeout is None:
        return build("calendar", "v3", credentials=creds, cache_discovery=False)
    http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
    return build("calendar", "v3", http=http, cache_discovery=False)
