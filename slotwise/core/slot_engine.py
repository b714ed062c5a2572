# File: slotwise/core/slot_engine.py
"""
Main slot engine module for Slotwise.
Coordinates all components to answer availability requests.

Each collaborator is injected, so the engine itself holds no state between
requests apart from the busy-time cache it was given.
"""

import datetime
import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple

import pytz

from slotwise.core.config_manager import Config
from slotwise.core.errors import DependencyError, SlotEngineError, ValidationError
from slotwise.utils.deadline import Deadline
from slotwise.utils.logger import setup_logger
from slotwise.models import (
    AvailableSlots,
    BusyInterval,
    ExistingBooking,
    Host,
    Interval,
    SchedulingType,
    SlotRequest,
)
from slotwise.models.common import localize
from slotwise.processors.host_qualifier import HostQualificationService
from slotwise.processors.limit_processor import LimitProcessor
from slotwise.processors.schedule_resolver import ScheduleResolver
from slotwise.processors.slot_generator import SlotGenerator
from slotwise.services.busy_time_cache import BusyTimeCache
from slotwise.services.busy_times import BusyTimeAggregator
from slotwise.services.notifier import LoggingNoSlotsNotifier, NoSlotsNotifier
from slotwise.services.provider_registry import CalendarProviderRegistry
from slotwise.services.repositories import (
    BookingCountRepository,
    BookingRepository,
    CredentialRepository,
    HostRepository,
    ScheduleRepository,
)

logger = setup_logger(__name__)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(pytz.UTC)


class SlotEngine:
    """
    Availability and slot-computation engine.

    Resolves schedules, aggregates busy time, applies booking limits and
    qualifies hosts to produce the bookable slots of an event type.
    """

    def __init__(
        self,
        schedule_repository: ScheduleRepository,
        host_repository: HostRepository,
        credential_repository: Optional[CredentialRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
        booking_count_repository: Optional[BookingCountRepository] = None,
        registry: Optional[CalendarProviderRegistry] = None,
        cache: Optional[BusyTimeCache] = None,
        notifier: Optional[NoSlotsNotifier] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        fairness_seed: Optional[int] = None,
    ):
        """
        Initialize the engine.

        Args:
            schedule_repository: Source of host schedules
            host_repository: Source of host records per event type
            credential_repository: Connected calendars per host
            booking_repository: Existing bookings per host
            booking_count_repository: Confirmed booking usage for limits
            registry: Calendar providers by kind
            cache: Busy-time cache shared across requests
            notifier: Called when a request yields no slots
            clock: Returns the current aware datetime (for notice and period)
            monotonic: Monotonic clock used for deadlines
            fairness_seed: Seed of the round-robin tie-break
        """
        self.hosts = host_repository
        self.credentials = credential_repository
        self.bookings = booking_repository
        self.registry = registry or CalendarProviderRegistry()
        self.cache = cache
        self.notifier = notifier or LoggingNoSlotsNotifier()
        self.clock = clock
        self.monotonic = monotonic
        self.fairness_seed = fairness_seed

        self.resolver = ScheduleResolver(schedule_repository)
        self.aggregator = BusyTimeAggregator(self.registry, booking_repository, cache)
        self.limit_processor = LimitProcessor(booking_count_repository)
        self.generator = SlotGenerator()

    def get_available_slots(self, request: SlotRequest) -> AvailableSlots:
        """
        Compute the bookable slots for a request.

        Args:
            request: Validated SlotRequest

        Returns:
            AvailableSlots keyed by booker-local date; empty when nothing is free

        Raises:
            ValidationError: Bad input (raised before any I/O)
            DependencyError: A mandatory read (bookings, limit usage) failed
            DeadlineExceededError: The deadline expired before booking limit usage was read
        """
        deadline = Deadline(request.deadline_seconds or Config.REQUEST_DEADLINE_SECONDS, self.monotonic)
        booker_tz = request.tz
        constraints = request.constraints
        now = self.clock()

        range_start = localize(booker_tz, datetime.datetime.combine(request.date_from, datetime.time.min))
        range_end = localize(booker_tz, datetime.datetime.combine(request.date_to, datetime.time.min))

        logger.info(
            f"Computing slots for event type {request.event_type_id} "
            f"({request.scheduling_type.value}, {len(request.host_ids)} hosts) "
            f"{request.date_from} - {request.date_to} [{request.booker_timezone}]"
        )

        # Step 1: Hosts and schedules
        hosts = self._load_hosts(request)
        schedule_windows: Dict[str, List[Interval]] = {}
        for host in hosts:
            schedule = self.resolver.get_schedule(host)
            schedule_windows[host.user_id] = self.resolver.resolve_intervals(
                schedule, request.date_from, request.date_to, request.booker_timezone
            )

        # Step 2: Busy times, padded on fetch so buffers reach across the range edges
        # Calendar fetches cut short by the deadline are dropped, not fatal
        fetch_start = range_start - datetime.timedelta(minutes=constraints.buffer_after)
        fetch_end = range_end + datetime.timedelta(minutes=constraints.buffer_before)
        busy_times, event_bookings = self._load_busy_times(request, hosts, fetch_start, fetch_end, deadline)

        # Step 3: Booking limits for every start that survives notice and period
        starts = self.generator.eligible_starts(
            constraints, schedule_windows, request.scheduling_type, now, booker_tz
        )
        usage = None
        if constraints.has_limits and starts:
            usage = self.limit_processor.load_usage(
                request.event_type_id, constraints, starts, hosts[0].timezone, deadline
            )

        # Step 4: Slots
        qualifier = HostQualificationService(seed=self.fairness_seed)
        if request.scheduling_type == SchedulingType.ROUND_ROBIN:
            qualifier.seed_assignments(self._prior_assignments(event_bookings))

        seated = None
        if constraints.is_seated:
            seated = [b for bookings in event_bookings.values() for b in bookings]

        slots = self.generator.generate(
            constraints,
            schedule_windows,
            busy_times,
            hosts,
            request.scheduling_type,
            qualifier,
            now,
            booker_tz,
            bucket_usage=usage,
            seated_bookings=seated,
            previous_host_id=request.previous_host_id,
        )

        slots_by_date = defaultdict(list)
        for slot in slots:
            slots_by_date[slot.start.astimezone(booker_tz).strftime("%Y-%m-%d")].append(slot)
        result = AvailableSlots(dict(slots_by_date), request.booker_timezone)

        if result.is_empty:
            self._notify_no_slots(request, range_start, range_end)
        else:
            logger.info(f"Found {result.total_slots()} slots on {len(result.slots_by_date)} days")
        return result

    def _load_hosts(self, request: SlotRequest) -> List[Host]:
        hosts = self.hosts.get_hosts(request.event_type_id, request.host_ids)
        found = {host.user_id for host in hosts}
        missing = [host_id for host_id in request.host_ids if host_id not in found]
        if missing:
            raise ValidationError(f"Unknown hosts for event type {request.event_type_id}: {missing}", field="hostIds")
        order = {host_id: i for i, host_id in enumerate(request.host_ids)}
        return sorted((h for h in hosts if h.user_id in order), key=lambda h: order[h.user_id])

    def _load_busy_times(
        self,
        request: SlotRequest,
        hosts: List[Host],
        start: datetime.datetime,
        end: datetime.datetime,
        deadline: Deadline,
    ) -> Tuple[Dict[str, List[BusyInterval]], Dict[str, List[ExistingBooking]]]:
        """
        Aggregate busy times for all hosts concurrently.

        Returns:
            (busy intervals per host, bookings of this event type per host)
        """
        seated_id = request.event_type_id if request.constraints.is_seated else None

        def load(host: Host):
            bookings = self.bookings.list_for_host(host.user_id, start, end) if self.bookings else []
            credentials = self.credentials.list_for_host(host.user_id) if self.credentials else []
            busy = self.aggregator.get_busy_times(
                host.user_id, credentials, start, end, deadline,
                seated_event_type_id=seated_id, bookings=bookings,
            )
            own = [b for b in bookings if b.event_type_id == request.event_type_id and b.blocks_time]
            return busy, own

        busy_times: Dict[str, List[BusyInterval]] = {}
        event_bookings: Dict[str, List[ExistingBooking]] = {}
        with ThreadPoolExecutor(max_workers=min(len(hosts), Config.MAX_FETCH_WORKERS),
                                thread_name_prefix="hosts") as executor:
            futures = [(host, executor.submit(load, host)) for host in hosts]
            for host, future in futures:
                try:
                    busy_times[host.user_id], event_bookings[host.user_id] = future.result()
                except SlotEngineError:
                    raise
                except Exception as e:
                    logger.error(f"Could not load bookings for host {host.user_id}: {e}", exc_info=True)
                    raise DependencyError(f"Booking read failed for host {host.user_id}") from e
        return busy_times, event_bookings

    @staticmethod
    def _prior_assignments(event_bookings: Dict[str, List[ExistingBooking]]) -> Dict[str, int]:
        counts = Counter()
        for host_id, bookings in event_bookings.items():
            counts[host_id] += len({b.uid for b in bookings})
        return dict(counts)

    def _notify_no_slots(self, request: SlotRequest, range_start: datetime.datetime,
                         range_end: datetime.datetime) -> None:
        event_details = {
            'eventTypeId': request.event_type_id,
            'hostIds': list(request.host_ids),
            'startTime': range_start.isoformat(),
            'endTime': range_end.isoformat(),
            'visitorTimezone': request.booker_timezone,
        }
        try:
            self.notifier.notify(event_details)
        except Exception as e:
            # The empty result is still valid; a broken notifier only loses the alert
            logger.warning(f"No-slots notification failed: {e}", exc_info=True)


class SlotEngineFactory:
    """Factory for creating SlotEngine instances with dependency injection."""

    @staticmethod
    def create(
        schedule_repository: ScheduleRepository,
        host_repository: HostRepository,
        credential_repository: Optional[CredentialRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
        booking_count_repository: Optional[BookingCountRepository] = None,
        registry: Optional[CalendarProviderRegistry] = None,
        notifier: Optional[NoSlotsNotifier] = None,
    ) -> SlotEngine:
        """
        Create a SlotEngine wired with the configured cache and providers.

        Returns:
            SlotEngine instance ready to serve requests

        Raises:
            ValueError: If configuration is invalid
        """
        logger.info("Creating SlotEngine via factory")

        if not Config.validate():
            raise ValueError("Configuration validation failed. Check your .env settings.")

        if registry is None:
            from slotwise.services.service_factory import ServiceFactory
            registry = ServiceFactory.create_registry()

        return SlotEngine(
            schedule_repository=schedule_repository,
            host_repository=host_repository,
            credential_repository=credential_repository,
            booking_repository=booking_repository,
            booking_count_repository=booking_count_repository,
            registry=registry,
            cache=BusyTimeCache(Config.BUSY_CACHE_TTL_SECONDS, Config.BUSY_CACHE_MAX_ENTRIES),
            notifier=notifier,
            fairness_seed=Config.FAIRNESS_SEED,
        )
