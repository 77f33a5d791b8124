import logging
from datetime import date
from typing import Callable, List, Tuple

from court_scheduler import config
from court_scheduler.courts import get_alternative_courts, get_courts_availability
from court_scheduler.durations import get_available_durations
from court_scheduler.filters import filter_past_slots, to_slot_views
from court_scheduler.flows import DEFAULT_FLOW, get_flow_steps, get_next_step, get_previous_step, resolve_flow
from court_scheduler.models import (
    AvailabilitySnapshot,
    Booking,
    BookingFlowType,
    BookingSelection,
    Court,
    CourtAvailabilityStatus,
    Duration,
    FlowStep,
    SlotView,
    StepLabel,
    TimeSlot,
    Venue,
)
from court_scheduler.occupancy import apply_bookings
from court_scheduler.pricing import DynamicPricingService, PricingService
from court_scheduler.slots import generate_time_slots
from court_scheduler.stores import BookingFilter, BookingStore, CourtRegistry, Subscription, VenueRegistry
from court_scheduler.timeutils import Clock, get_user_timezone, now_in, parse_date

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[AvailabilitySnapshot], None]


class SchedulerState:
    """Availability state for one booking session.

    Holds the snapshot for the selected (venue, date) and replaces it whenever the
    selection, the court registry, the venue, or the booking set changes. Every published
    snapshot is a new immutable object. A new trigger supersedes the previous booking
    subscription; callbacks from superseded subscriptions are dropped.
    """

    def __init__(
        self,
        court_registry: CourtRegistry,
        venue_registry: VenueRegistry,
        booking_store: BookingStore,
        pricing: PricingService | None = None,
        tz_name: str | None = None,
        clock: Clock | None = None,
        grace_minutes: int = config.PAST_SLOT_GRACE_MINUTES,
    ):
        self.court_registry = court_registry
        self.venue_registry = venue_registry
        self.booking_store = booking_store
        self.tz_name = tz_name or get_user_timezone()
        self.pricing = pricing or DynamicPricingService(tz_name=self.tz_name)
        self.grace_minutes = grace_minutes
        self._clock = clock or (lambda: now_in(self.tz_name))

        self.selection = BookingSelection()
        self._snapshot = AvailabilitySnapshot()
        self._listeners: List[SnapshotListener] = []
        self._key: Tuple[date, str] | None = None
        self._venue: Venue | None = None
        self._flow_type: BookingFlowType = DEFAULT_FLOW
        self._flow_venue_id: str | None = None
        self._generation = 0
        self._version = 0
        self._disposed = False
        self._booking_subscription: Subscription | None = None
        self._registry_subscriptions = [
            court_registry.subscribe(self._on_courts_changed),
            venue_registry.subscribe(self._on_venues_changed),
        ]

    # --- Publishing ---

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Subscription:
        """Registers a snapshot listener; it is called with the current snapshot right away."""
        self._listeners.append(listener)
        listener(self._snapshot)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(remove)

    def _publish(self, **fields):
        day, venue_id = self._key
        self._version += 1
        values = dict(
            date=day.isoformat(),
            venue_id=venue_id,
            venue_name=self._venue.name if self._venue else "",
            flow_type=self._flow_type,
            version=self._version,
        )
        values.update(fields)
        self._snapshot = AvailabilitySnapshot(**values)
        for listener in list(self._listeners):
            listener(self._snapshot)

    # --- Triggers ---
    def select(self, date_value, venue_id: str | None):
        """Selects the (date, venue) to compute availability for.

        Unparseable dates fall back to today's local date; the substitution is logged.
        Re-selecting the current pair is a no-op. Selecting a different pair clears the
        court and time choices made for the previous one.
        """
        if self._disposed:
            logger.warning("Ignoring selection on a disposed scheduler state")
            return
        if not date_value or not venue_id:
            logger.debug("Date or venue not selected yet, nothing to compute")
            return

        parsed = parse_date(date_value, fallback=self._clock().date())
        key = (parsed.value, venue_id)
        update = {"date": parsed.value.isoformat(), "venue_id": venue_id}
        if key != self._key:
            update.update(court_id=None, start_time=None, end_time=None)
        self.selection = self.selection.model_copy(update=update)
        if key == self._key:
            return

        self._key = key
        self._recompute(clear=True)

    def update_selection(self, **changes):
        """Updates the wizard selection; a date or venue change triggers recomputation."""
        key_changes = {name: changes.pop(name) for name in ("date", "venue_id") if name in changes}
        if key_changes:
            self.selection = self.selection.model_copy(update=key_changes)
            self.select(self.selection.date, self.selection.venue_id)
        self.selection = self.selection.model_copy(update=changes)

    def refresh(self):
        """Recomputes the current selection, keeping the last slots visible while loading."""
        if self._key and not self._disposed:
            self._recompute(clear=False)

    def _on_courts_changed(self, courts: List[Court]):
        if self._key is None or self._disposed:
            return
        venue_id = self._key[1]
        active_ids = [court.id for court in courts if court.venue_id == venue_id and court.is_active]
        if active_ids != list(self._snapshot.active_court_ids) or self._snapshot.error:
            logger.info(f"Active courts changed for venue {venue_id}, recomputing availability")
            self._recompute(clear=False)

    def _on_venues_changed(self, venues: List[Venue]):
        if self._key is None or self._disposed:
            return
        venue = self.venue_registry.get(self._key[1])
        if venue != self._venue:
            logger.info(f"Venue {self._key[1]} changed, recomputing availability")
            self._recompute(clear=False)

    # --- Recomputation ---

    def _resolve_venue(self, venue_id: str):
        self._venue = self.venue_registry.get(venue_id)
        if self._venue is None:
            logger.warning(f"Venue {venue_id} not found in registry")

        # The flow is fixed for the session; live edits to the venue's flow are ignored.
        if self._flow_venue_id != venue_id:
            self._flow_type = resolve_flow(self._venue)
            self._flow_venue_id = venue_id

    def _recompute(self, clear: bool):
        self._generation += 1
        generation = self._generation
        if self._booking_subscription:
            self._booking_subscription.unsubscribe()
            self._booking_subscription = None

        day, venue_id = self._key
        self._resolve_venue(venue_id)
        logger.debug(f"Recomputing availability for venue {venue_id} on {day.isoformat()} (generation {generation})")

        previous = self._snapshot
        self._publish(
            loading=True,
            error=None,
            time_slots=[] if clear else previous.time_slots,
            active_court_ids=[] if clear else previous.active_court_ids,
            bookings=[] if clear else previous.bookings,
        )
        # A listener may have changed the selection while the loading snapshot was published.
        if generation != self._generation:
            return

        active_courts = [
            court for court in self.court_registry.courts() if court.venue_id == venue_id and court.is_active
        ]
        if not active_courts:
            logger.warning(f"No active courts for venue {venue_id}")
            self._publish(
                loading=False, error=config.NO_ACTIVE_COURTS_ERROR, time_slots=[], active_court_ids=[], bookings=[]
            )
            return

        active_court_ids = [court.id for court in active_courts]
        skeleton = generate_time_slots(day, active_court_ids, self._clock(), self._venue, self.tz_name)
        booking_filter = BookingFilter(date=day.isoformat(), venue_id=venue_id)

        try:
            subscription = self.booking_store.subscribe(
                booking_filter,
                lambda bookings: self._on_bookings(generation, day, skeleton, active_court_ids, bookings),
                lambda error: self._on_booking_error(generation, skeleton, active_court_ids, error),
            )
        except Exception as e:
            self._on_booking_error(generation, skeleton, active_court_ids, e)
            return

        if generation == self._generation:
            self._booking_subscription = subscription
        else:
            subscription.unsubscribe()

    def _on_bookings(
        self,
        generation: int,
        day: date,
        skeleton: List[TimeSlot],
        active_court_ids: List[str],
        bookings: List[Booking],
    ):
        if generation != self._generation or self._disposed:
            logger.debug(f"Dropping bookings from superseded generation {generation}")
            return

        time_slots = apply_bookings(skeleton, bookings, day, self.tz_name)
        self._publish(
            loading=False,
            error=None,
            time_slots=time_slots,
            active_court_ids=active_court_ids,
            bookings=list(bookings),
        )
        logger.debug(f"Published availability v{self._version} with {len(bookings)} bookings")

    def _on_booking_error(
        self, generation: int, skeleton: List[TimeSlot], active_court_ids: List[str], error: Exception
    ):
        if generation != self._generation or self._disposed:
            return

        logger.error(f"Error loading bookings: {error}")
        previous = self._snapshot
        self._publish(
            loading=False,
            error=config.AVAILABILITY_LOAD_ERROR,
            time_slots=previous.time_slots or skeleton,
            active_court_ids=previous.active_court_ids or active_court_ids,
            bookings=previous.bookings,
        )

    def dispose(self):
        """Tears down every subscription. No callbacks are processed afterwards."""
        self._disposed = True
        self._generation += 1
        if self._booking_subscription:
            self._booking_subscription.unsubscribe()
            self._booking_subscription = None
        for subscription in self._registry_subscriptions:
            subscription.unsubscribe()
        self._registry_subscriptions = []
        self._listeners = []

    # --- Read-side queries ---

    def _snapshot_courts(self, snapshot: AvailabilitySnapshot) -> List[Court]:
        return [court for court in self.court_registry.courts() if court.id in snapshot.active_court_ids]

    def get_available_time_slots(self) -> List[SlotView]:
        snapshot = self._snapshot
        day = parse_date(snapshot.date)
        if not day.ok:
            return []
        views = to_slot_views(snapshot.time_slots)
        return filter_past_slots(views, day.value, self.grace_minutes, self.tz_name, self._clock())

    def get_available_durations(
        self, start_time: str | None, court_id: str | None = None, user_id: str | None = None
    ) -> List[Duration]:
        snapshot = self._snapshot
        return get_available_durations(
            snapshot,
            self._snapshot_courts(snapshot),
            start_time,
            court_id=court_id,
            pricing=self.pricing,
            user_id=user_id or self.selection.user_id,
            tz_name=self.tz_name,
            now=self._clock(),
            grace_minutes=self.grace_minutes,
        )

    def get_courts_availability(
        self,
        start_time: str | None = None,
        duration_minutes: int | None = None,
        selection: BookingSelection | None = None,
    ) -> List[CourtAvailabilityStatus]:
        snapshot = self._snapshot
        return get_courts_availability(
            snapshot,
            self._snapshot_courts(snapshot),
            start_time,
            duration_minutes,
            selection=selection or self.selection,
            tz_name=self.tz_name,
        )

    def get_alternative_courts(
        self, start_time: str, duration_minutes: int, exclude_court_id: str | None = None
    ) -> List[Court]:
        snapshot = self._snapshot
        return get_alternative_courts(
            snapshot,
            self._snapshot_courts(snapshot),
            start_time,
            duration_minutes,
            exclude_court_id=exclude_court_id or self.selection.court_id,
            tz_name=self.tz_name,
        )

    # --- Flow navigation ---

    def flow_steps(self) -> List[FlowStep]:
        return get_flow_steps(self._snapshot.flow_type)

    def next_step(self, label: StepLabel) -> int:
        return get_next_step(self._snapshot.flow_type, label)

    def previous_step(self, label: StepLabel) -> int:
        return get_previous_step(self._snapshot.flow_type, label)
