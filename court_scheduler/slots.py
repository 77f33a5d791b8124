import logging
from datetime import date, datetime
from typing import List, Sequence, Tuple

from court_scheduler import config
from court_scheduler.models import TimeSlot, Venue
from court_scheduler.timeutils import format_minutes, get_zone, now_in, parse_hhmm, weekday_name

logger = logging.getLogger(__name__)


def _snap_up(minutes: int) -> int:
    return -(-minutes // config.SLOT_MINUTES) * config.SLOT_MINUTES


def _snap_down(minutes: int) -> int:
    return (minutes // config.SLOT_MINUTES) * config.SLOT_MINUTES


def operating_window(day: date, venue: Venue | None = None) -> Tuple[int, int] | None:
    """Returns the bookable [open, close) window in minutes for `day`, or None if the venue is closed.

    Venues without operating hours use the default opening and closing hours.
    """
    default = (config.OPENING_HOUR * 60, config.CLOSING_HOUR * 60)
    if venue is None or venue.operating_hours is None:
        return default

    hours = venue.operating_hours.get(weekday_name(day))
    if hours is None:
        logger.debug(f"Venue {venue.id} is closed on {weekday_name(day)}")
        return None

    try:
        open_minutes = _snap_up(parse_hhmm(hours.open))
        close_minutes = _snap_down(parse_hhmm(hours.close))
    except ValueError:
        logger.warning(f"Invalid operating hours {hours.open}-{hours.close} for venue {venue.id}, using defaults")
        return default

    return open_minutes, close_minutes


def generate_time_slots(
    day: date,
    active_court_ids: Sequence[str],
    now: datetime | None = None,
    venue: Venue | None = None,
    tz_name: str | None = None,
) -> List[TimeSlot]:
    """Generates the day's 30-minute slot skeleton with every court marked available.

    On the current local day the first slot is clamped to the current hour, so slots that
    already started an hour or more ago are not generated at all.
    """
    window = operating_window(day, venue)
    if window is None:
        return []
    lower, upper = window

    current = (now or now_in(tz_name)).astimezone(get_zone(tz_name))
    if current.date() == day:
        lower = max(lower, current.hour * 60)

    has_courts = bool(active_court_ids)
    slots = []
    for minutes in range(lower, upper, config.SLOT_MINUTES):
        slots.append(
            TimeSlot(
                time=format_minutes(minutes),
                time_value=minutes,
                court_availability={court_id: True for court_id in active_court_ids},
                has_available_courts=has_courts,
            )
        )

    logger.debug(f"Generated {len(slots)} slots for {day.isoformat()} ({len(active_court_ids)} courts)")
    return slots
