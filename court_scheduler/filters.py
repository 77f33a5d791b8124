import logging
from datetime import date, datetime
from typing import Iterable, List

from court_scheduler import config
from court_scheduler.models import SlotView, TimeSlot
from court_scheduler.timeutils import is_time_slot_in_past

logger = logging.getLogger(__name__)


def to_slot_views(time_slots: Iterable[TimeSlot]) -> List[SlotView]:
    """Flattens time slots into the label/value/available view used by the time step."""
    return [
        SlotView(label=slot.time, value=slot.time_value, available=slot.has_available_courts)
        for slot in sorted(time_slots, key=lambda s: s.time_value)
    ]


def filter_past_slots(
    views: Iterable[SlotView],
    day: date,
    grace_minutes: int = config.PAST_SLOT_GRACE_MINUTES,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> List[SlotView]:
    """Marks views whose start (plus grace) has already passed as unavailable.

    Only derived views are touched; occupancy data stays as is, so calling this again
    later re-evaluates past-ness against the new current time.
    """
    result = []
    past_count = 0
    for view in views:
        if view.available and is_time_slot_in_past(day, view.value, grace_minutes, tz_name, now):
            view = SlotView(label=view.label, value=view.value, available=False)
            past_count += 1
        result.append(view)

    if past_count:
        logger.debug(f"Marked {past_count} elapsed slots unavailable for {day.isoformat()}")
    return result
