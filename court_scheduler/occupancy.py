import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Sequence, Tuple

from court_scheduler import config
from court_scheduler.models import Booking, TimeSlot
from court_scheduler.timeutils import minutes_on_date, parse_instant

logger = logging.getLogger(__name__)

Span = Tuple[int, int]


def booking_span(booking: Booking, day: date, tz_name: str | None = None) -> Span | None:
    """Converts a booking into a [start, end) span in minutes since local midnight of `day`.

    Returns None (and logs) for unparseable or empty spans.
    """
    start = parse_instant(booking.start_time, day, tz_name)
    end = parse_instant(booking.end_time, day, tz_name)
    if not start.ok or not end.ok:
        logger.warning(f"Ignoring booking {booking.id}: {start.error or end.error}")
        return None

    start_minutes = max(minutes_on_date(start.value, day, tz_name), 0)
    end_minutes = min(minutes_on_date(end.value, day, tz_name), config.MINUTES_PER_DAY)
    if end_minutes <= start_minutes:
        logger.warning(f"Ignoring booking {booking.id}: empty span {booking.start_time} - {booking.end_time}")
        return None

    return start_minutes, end_minutes


def occupied_spans(bookings: Iterable[Booking], day: date, tz_name: str | None = None) -> Dict[str, List[Span]]:
    """Groups the spans of active bookings on `day` by court."""
    spans: Dict[str, List[Span]] = defaultdict(list)
    for booking in bookings:
        if not booking.is_active:
            continue
        if booking.date and booking.date != day.isoformat():
            continue
        span = booking_span(booking, day, tz_name)
        if span:
            spans[booking.court_id].append(span)
    return spans


def apply_bookings(
    slots: Sequence[TimeSlot],
    bookings: Iterable[Booking],
    day: date,
    tz_name: str | None = None,
) -> List[TimeSlot]:
    """Marks every court/slot pair covered by an active booking as unavailable.

    Returns new slots; the input skeleton is left untouched. Bookings for courts that are
    not part of the skeleton are ignored.
    """
    spans = occupied_spans(bookings, day, tz_name)

    unknown = set(spans) - {court_id for slot in slots[:1] for court_id in slot.court_availability}
    if slots and unknown:
        logger.debug(f"Ignoring bookings for courts not in the slot map: {sorted(unknown)}")

    result = []
    for slot in slots:
        availability = {
            court_id: available
            and not any(start <= slot.time_value < end for start, end in spans.get(court_id, ()))
            for court_id, available in slot.court_availability.items()
        }
        result.append(
            TimeSlot(
                time=slot.time,
                time_value=slot.time_value,
                court_availability=availability,
                has_available_courts=any(availability.values()),
            )
        )
    return result
