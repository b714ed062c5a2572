"""
Slot finder entry point.
Loads hosts, schedules, calendars and bookings from a JSON data file and
prints the available slots for the request it contains.

Usage:
    python scripts/find_slots.py data.json
    python scripts/find_slots.py data.json --google --now 2025-01-06T08:00:00Z
    python scripts/find_slots.py --authorize
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from slotwise.core.config_manager import Config
from slotwise.core.errors import SlotEngineError, ValidationError
from slotwise.core.slot_engine import SlotEngine
from slotwise.models import (
    booking_from_dict,
    credential_from_dict,
    host_from_dict,
    parse_iso_datetime,
    schedule_from_dict,
    slot_request_from_dict,
)
from slotwise.models.common import ensure_aware
from slotwise.services.busy_time_cache import BusyTimeCache
from slotwise.services.repositories import (
    InMemoryBookingStore,
    InMemoryCredentialRepository,
    InMemoryHostRepository,
    InMemoryScheduleRepository,
)
from slotwise.services.service_factory import ServiceFactory
from slotwise.utils.logger import set_console_level, setup_logger

logger = setup_logger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute bookable slots from a JSON data file")
    parser.add_argument("data_file", nargs="?", help="JSON file with hosts, schedules, bookings and request")
    parser.add_argument("--google", action="store_true",
                        help="Fetch busy times from Google Calendar using token.json")
    parser.add_argument("--outlook", action="store_true",
                        help="Fetch busy times from Microsoft Graph using credential access tokens")
    parser.add_argument("--authorize", action="store_true",
                        help="Run the one-time Google OAuth flow and exit")
    parser.add_argument("--now", help="Override the current time (ISO 8601) for notice and period checks")
    parser.add_argument("--output", help="Write the result JSON to this file instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging on the console")
    return parser.parse_args(argv)


def build_engine(data: dict, args: argparse.Namespace) -> SlotEngine:
    """Load the data file into in-memory repositories and wire an engine."""
    bookings = InMemoryBookingStore(booking_from_dict(b) for b in data.get('bookings', []))
    registry = ServiceFactory.create_registry(include_google=args.google, include_outlook=args.outlook)

    engine_args = dict(
        schedule_repository=InMemoryScheduleRepository(schedule_from_dict(s) for s in data.get('schedules', [])),
        host_repository=InMemoryHostRepository(host_from_dict(h) for h in data.get('hosts', [])),
        credential_repository=InMemoryCredentialRepository(
            credential_from_dict(c) for c in data.get('credentials', [])
        ),
        booking_repository=bookings,
        booking_count_repository=bookings,
        registry=registry,
        cache=BusyTimeCache(Config.BUSY_CACHE_TTL_SECONDS, Config.BUSY_CACHE_MAX_ENTRIES),
        fairness_seed=Config.FAIRNESS_SEED,
    )
    if args.now:
        fixed_now = parse_iso_datetime(args.now)
        if fixed_now is None:
            raise ValidationError(f"Invalid --now value: {args.now}", field="now")
        fixed_now = ensure_aware(fixed_now)
        engine_args['clock'] = lambda: fixed_now
    return SlotEngine(**engine_args)


def main(argv=None) -> int:
    """
    Main execution function.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = parse_args(argv)
    start_time = time.time()

    if args.verbose:
        set_console_level(logging.DEBUG)

    if args.authorize:
        from slotwise.auth.google_auth import create_initial_token
        return 0 if create_initial_token() else 1

    if not args.data_file:
        logger.error("A data file is required (see --help)")
        return 1

    if not Config.validate():
        logger.error("Configuration validation failed")
        return 1

    try:
        with open(args.data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        engine = build_engine(data, args)
        request = slot_request_from_dict(data.get('request', {}))
        result = engine.get_available_slots(request)

        output = json.dumps(result.to_dict(), indent=2)
        if args.output:
            Path(args.output).write_text(output, encoding="utf-8")
            logger.info(f"Wrote {result.total_slots()} slots to {args.output}")
        else:
            print(output)
        return 0

    except FileNotFoundError as e:
        logger.error(f"Could not find: {e.filename}")
        return 1

    except json.JSONDecodeError as e:
        logger.error(f"Data file is not valid JSON: {e}")
        return 1

    except ValidationError as e:
        logger.error(f"Invalid request: {e}")
        return 1

    except SlotEngineError as e:
        logger.error(f"Slot computation failed: {e}", exc_info=True)
        return 1

    finally:
        elapsed = time.time() - start_time
        logger.info(f"Total execution time: {elapsed:.2f} seconds")


if __name__ == "__main__":
    sys.exit(main())
