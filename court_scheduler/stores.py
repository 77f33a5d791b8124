import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Protocol

import requests
from pydantic import ValidationError

from court_scheduler import config
from court_scheduler.errors import DataSourceError
from court_scheduler.models import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, Court, Venue

logger = logging.getLogger(__name__)

BookingsCallback = Callable[[List[Booking]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """Handle returned by every `subscribe` call. Unsubscribing twice is harmless."""

    def __init__(self, on_close: Callable[[], None] | None = None):
        self._on_close = on_close
        self.closed = False

    def unsubscribe(self):
        if self.closed:
            return
        self.closed = True
        if self._on_close:
            self._on_close()


@dataclass(frozen=True)
class BookingFilter:
    date: str  # YYYY-MM-DD
    venue_id: str | None = None
    statuses: FrozenSet[BookingStatus] = ACTIVE_BOOKING_STATUSES

    def matches(self, booking: Booking) -> bool:
        if booking.date and booking.date != self.date:
            return False
        if self.venue_id and booking.venue_id and booking.venue_id != self.venue_id:
            return False
        return booking.status in self.statuses

    def as_params(self) -> Dict:
        params = {"date": self.date, "status": sorted(s.value for s in self.statuses)}
        if self.venue_id:
            params["venueId"] = self.venue_id
        return params


# --- Collaborator contracts ---


class CourtRegistry(Protocol):
    def courts(self) -> List[Court]:
        ...

    def subscribe(self, listener: Callable[[List[Court]], None]) -> Subscription:
        ...


class VenueRegistry(Protocol):
    def venues(self) -> List[Venue]:
        ...

    def get(self, venue_id: str) -> Venue | None:
        ...

    def subscribe(self, listener: Callable[[List[Venue]], None]) -> Subscription:
        ...


class BookingStore(Protocol):
    def subscribe(
        self, booking_filter: BookingFilter, on_next: BookingsCallback, on_error: ErrorCallback | None = None
    ) -> Subscription:
        ...


# --- In-memory implementations ---


class _InMemoryRegistry:
    def __init__(self, items=None):
        self._items: Dict[str, object] = {}
        self._listeners: List[Callable] = []
        for item in items or []:
            self._items[item.id] = item

    def get(self, item_id: str):
        return self._items.get(item_id)

    def _all(self) -> List:
        return list(self._items.values())

    def upsert(self, item):
        self._items[item.id] = item
        self._notify()

    def remove(self, item_id: str):
        if self._items.pop(item_id, None) is not None:
            self._notify()

    def subscribe(self, listener: Callable) -> Subscription:
        self._listeners.append(listener)
        return Subscription(lambda: self._listeners.remove(listener))

    def _notify(self):
        items = self._all()
        for listener in list(self._listeners):
            listener(items)


class InMemoryCourtRegistry(_InMemoryRegistry):
    def courts(self) -> List[Court]:
        return self._all()

    def active_courts(self, venue_id: str) -> List[Court]:
        return [court for court in self._all() if court.venue_id == venue_id and court.is_active]


class InMemoryVenueRegistry(_InMemoryRegistry):
    def venues(self) -> List[Venue]:
        return self._all()


@dataclass
class _BookingSubscriber:
    booking_filter: BookingFilter
    on_next: BookingsCallback
    on_error: ErrorCallback | None
    subscription: Subscription = field(default_factory=Subscription)


class InMemoryBookingStore:
    """Booking store that emits the full matching set to subscribers on every change."""

    def __init__(self, bookings: List[Booking] | None = None):
        self._bookings: Dict[str, Booking] = {}
        self._subscribers: List[_BookingSubscriber] = []
        self._next_key = 0
        for booking in bookings or []:
            self._store(booking)

    def _store(self, booking: Booking) -> str:
        key = booking.id
        if key is None:
            self._next_key += 1
            key = f"booking-{self._next_key}"
        self._bookings[key] = booking
        return key

    def bookings(self) -> List[Booking]:
        return list(self._bookings.values())

    def upsert(self, booking: Booking) -> str:
        """Stores the booking, replacing any booking with the same id. Returns its key."""
        key = self._store(booking)
        self._emit()
        return key

    add = upsert

    def remove(self, booking_id: str):
        if self._bookings.pop(booking_id, None) is not None:
            self._emit()

    def replace_all(self, bookings: List[Booking]):
        self._bookings = {}
        for booking in bookings:
            self._store(booking)
        self._emit()

    def subscribe(
        self, booking_filter: BookingFilter, on_next: BookingsCallback, on_error: ErrorCallback | None = None
    ) -> Subscription:
        subscriber = _BookingSubscriber(booking_filter, on_next, on_error)
        subscriber.subscription = Subscription(lambda: self._subscribers.remove(subscriber))
        self._subscribers.append(subscriber)
        on_next(self._matching(booking_filter))
        return subscriber.subscription

    def fail(self, error: Exception):
        """Pushes a data source error to every open subscription."""
        for subscriber in list(self._subscribers):
            if subscriber.on_error:
                subscriber.on_error(error)

    def _matching(self, booking_filter: BookingFilter) -> List[Booking]:
        return [booking for booking in self._bookings.values() if booking_filter.matches(booking)]

    def _emit(self):
        for subscriber in list(self._subscribers):
            if not subscriber.subscription.closed:
                subscriber.on_next(self._matching(subscriber.booking_filter))


class HttpBookingStore:
    """Booking store backed by a REST endpoint returning {"bookings": [...]}.

    There is no background polling: `subscribe` fetches once and `refresh` re-fetches for
    every open subscription.
    """

    def __init__(self, url: str | None = None, timeout: int = config.HTTP_TIMEOUT):
        self.url = url or config.BOOKINGS_API_URL
        self.timeout = timeout
        self._subscribers: List[_BookingSubscriber] = []
        if not self.url:
            logger.warning("No bookings API URL configured. Every fetch will fail.")

    def fetch(self, booking_filter: BookingFilter) -> List[Booking]:
        """Fetches the bookings matching `booking_filter`. Raises DataSourceError on any failure."""
        if not self.url:
            raise DataSourceError("No bookings API URL configured")

        logger.info(f"Fetching bookings for {booking_filter.date} from {self.url}")
        try:
            response = requests.get(self.url, params=booking_filter.as_params(), timeout=self.timeout)
            logger.debug(f"Response status: {response.status_code}")
            response.raise_for_status()
            data: Dict = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise DataSourceError(f"Failed to fetch bookings: {e}") from e

        if not isinstance(data, dict) or "bookings" not in data:
            raise DataSourceError("Unexpected JSON format. 'bookings' key missing.")
        if not isinstance(data["bookings"], list):
            raise DataSourceError("Unexpected JSON format. 'bookings' is not a list.")

        try:
            bookings = [Booking.model_validate(raw) for raw in data["bookings"]]
        except ValidationError as e:
            raise DataSourceError(f"Invalid booking record: {e}") from e

        return [booking for booking in bookings if booking_filter.matches(booking)]

    def subscribe(
        self, booking_filter: BookingFilter, on_next: BookingsCallback, on_error: ErrorCallback | None = None
    ) -> Subscription:
        subscriber = _BookingSubscriber(booking_filter, on_next, on_error)
        subscriber.subscription = Subscription(lambda: self._subscribers.remove(subscriber))
        self._subscribers.append(subscriber)
        self._deliver(subscriber)
        return subscriber.subscription

    def refresh(self):
        for subscriber in list(self._subscribers):
            self._deliver(subscriber)

    def _deliver(self, subscriber: _BookingSubscriber):
        try:
            bookings = self.fetch(subscriber.booking_filter)
        except DataSourceError as e:
            logger.error(f"Error fetching bookings: {e}")
            if subscriber.on_error:
                subscriber.on_error(e)
            return
        if not subscriber.subscription.closed:
            subscriber.on_next(bookings)
