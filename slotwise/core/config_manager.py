# File: slotwise/core/config_manager.py
"""
Centralized configuration management for Slotwise.
Loads settings from environment variables (and a local .env file).
"""

import os
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

import pytz

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class Config:
    """Application configuration singleton."""

    # Base directories
    BASE_DIR = Path(__file__).parent.parent.parent  # Go up 3 levels from slotwise/core/
    LOGS_DIR = Path(os.getenv("SLOTWISE_LOG_DIR", str(BASE_DIR / "logs")))
    LOG_LEVEL = os.getenv("SLOTWISE_LOG_LEVEL", "INFO").upper()
    LOG_TO_FILE = os.getenv("SLOTWISE_LOG_TO_FILE", "true").lower() in ['yes', 'true', '1', 'y', 't']

    # Google Calendar
    TOKEN_FILE = Path(os.getenv("GOOGLE_TOKEN_FILE", str(BASE_DIR / "token.json")))
    CREDENTIALS_FILE = Path(os.getenv("GOOGLE_CREDENTIALS_FILE", str(BASE_DIR / "credentials.json")))
    GOOGLE_SCOPES = [
        'https://www.googleapis.com/auth/calendar.readonly',
    ]

    # Microsoft Graph
    GRAPH_API_URL = os.getenv("GRAPH_API_URL", "https://graph.microsoft.com/v1.0")

    # Engine settings
    DEFAULT_TIMEZONE = os.getenv("SLOTWISE_DEFAULT_TIMEZONE", "UTC")
    BUSY_CACHE_TTL_SECONDS = _env_float("BUSY_CACHE_TTL_SECONDS", 60.0)
    BUSY_CACHE_MAX_ENTRIES = _env_int("BUSY_CACHE_MAX_ENTRIES", 10000)
    PROVIDER_TIMEOUT_SECONDS = _env_float("PROVIDER_TIMEOUT_SECONDS", 10.0)
    MAX_FETCH_WORKERS = _env_int("MAX_FETCH_WORKERS", 8)
    REQUEST_DEADLINE_SECONDS = _env_float("REQUEST_DEADLINE_SECONDS", 30.0)
    FAIRNESS_SEED = _env_optional_int("FAIRNESS_SEED")

    # Default schedule used when a host has none (0 = Sunday ... 6 = Saturday)
    DEFAULT_WORKING_DAYS: List[int] = [
        int(d) for d in os.getenv("DEFAULT_WORKING_DAYS", "1,2,3,4,5").split(",") if d.strip()
    ]
    DEFAULT_WORKING_START = os.getenv("DEFAULT_WORKING_START", "09:00")
    DEFAULT_WORKING_END = os.getenv("DEFAULT_WORKING_END", "17:00")

    @classmethod
    def validate(cls) -> bool:
        """Validate that the engine configuration is usable."""
        errors = []

        if cls.LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"SLOTWISE_LOG_LEVEL is not a logging level: {cls.LOG_LEVEL}")

        if cls.DEFAULT_TIMEZONE not in pytz.all_timezones_set:
            errors.append(f"SLOTWISE_DEFAULT_TIMEZONE is not a known timezone: {cls.DEFAULT_TIMEZONE}")

        if cls.BUSY_CACHE_TTL_SECONDS < 0:
            errors.append("BUSY_CACHE_TTL_SECONDS must not be negative")

        if cls.PROVIDER_TIMEOUT_SECONDS <= 0:
            errors.append("PROVIDER_TIMEOUT_SECONDS must be positive")

        if cls.MAX_FETCH_WORKERS < 1:
            errors.append("MAX_FETCH_WORKERS must be at least 1")

        if cls.REQUEST_DEADLINE_SECONDS <= 0:
            errors.append("REQUEST_DEADLINE_SECONDS must be positive")

        if any(d < 0 or d > 6 for d in cls.DEFAULT_WORKING_DAYS):
            errors.append("DEFAULT_WORKING_DAYS must contain values between 0 and 6")

        if errors:
            for error in errors:
                print(f"Configuration Error: {error}")
            return False

        return True
