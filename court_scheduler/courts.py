import logging
from datetime import date
from typing import List, Sequence

from court_scheduler import config
from court_scheduler.durations import slot_index
from court_scheduler.models import AvailabilitySnapshot, BookingSelection, Court, CourtAvailabilityStatus
from court_scheduler.timeutils import format_minutes, minutes_on_date, parse_date, parse_instant

logger = logging.getLogger(__name__)


def selection_duration(selection: BookingSelection | None, day: date, tz_name: str | None = None) -> int | None:
    """Minutes between the selection's start and end, or None if either is missing or invalid."""
    if selection is None or not selection.start_time or not selection.end_time:
        return None

    start = parse_instant(selection.start_time, day, tz_name)
    end = parse_instant(selection.end_time, day, tz_name)
    if not start.ok or not end.ok:
        logger.warning(f"Invalid selected booking times: {start.error or end.error}")
        return None

    minutes = int((end.value - start.value).total_seconds() // 60)
    return minutes if minutes > 0 else None


def get_courts_availability(
    snapshot: AvailabilitySnapshot,
    courts: Sequence[Court],
    start_time: str | None = None,
    duration_minutes: int | None = None,
    selection: BookingSelection | None = None,
    tz_name: str | None = None,
) -> List[CourtAvailabilityStatus]:
    """Ranks every active court by how much of [start, start + duration) it has free.

    Fully available courts come first, then courts with more free sub-slots, then by name.
    Sub-slots missing from the snapshot count as unavailable.
    """
    day_result = parse_date(snapshot.date)
    if not day_result.ok:
        return []
    day = day_result.value

    effective_start = start_time or (selection.start_time if selection else None)
    start = parse_instant(effective_start, day, tz_name)
    if not start.ok:
        logger.warning(f"Cannot rank courts: {start.error}")
        return []
    start_minutes = minutes_on_date(start.value, day, tz_name)

    if duration_minutes is None:
        duration_minutes = selection_duration(selection, day, tz_name) or config.SLOT_MINUTES
    if duration_minutes <= 0:
        logger.warning(f"Invalid duration {duration_minutes}")
        return []

    slots = slot_index(snapshot)
    result = []

    for court in courts:
        if court.id not in snapshot.active_court_ids:
            continue

        available_time_slots = []
        unavailable_time_slots = []
        for minute in range(start_minutes, start_minutes + duration_minutes, config.SLOT_MINUTES):
            slot = slots.get(minute)
            if slot is not None and slot.court_availability.get(court.id, False):
                available_time_slots.append(format_minutes(minute))
            else:
                unavailable_time_slots.append(format_minutes(minute))

        result.append(
            CourtAvailabilityStatus(
                court_id=court.id,
                court_name=court.name,
                available=bool(available_time_slots),
                fully_available=not unavailable_time_slots,
                available_time_slots=available_time_slots,
                unavailable_time_slots=unavailable_time_slots,
            )
        )

    return sorted(
        result,
        key=lambda status: (not status.fully_available, -len(status.available_time_slots), status.court_name),
    )


def get_alternative_courts(
    snapshot: AvailabilitySnapshot,
    courts: Sequence[Court],
    start_time: str,
    duration_minutes: int,
    exclude_court_id: str | None = None,
    tz_name: str | None = None,
) -> List[Court]:
    """Fully available courts for the span, other than `exclude_court_id`, best first."""
    if not start_time or not duration_minutes:
        return []

    courts_by_id = {court.id: court for court in courts}
    ranked = get_courts_availability(snapshot, courts, start_time, duration_minutes, tz_name=tz_name)
    return [
        courts_by_id[status.court_id]
        for status in ranked
        if status.fully_available and status.court_id != exclude_court_id
    ]
