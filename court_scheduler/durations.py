import logging
import math
from datetime import date, datetime, timedelta
from typing import Dict, List, Sequence

from court_scheduler import config
from court_scheduler.models import AvailabilitySnapshot, Court, Duration, TimeSlot
from court_scheduler.pricing import DynamicPricingService, PricingService, round_price
from court_scheduler.timeutils import is_time_slot_in_past, minutes_on_date, parse_date, parse_instant

logger = logging.getLogger(__name__)


def duration_label(minutes: int) -> str:
    """Human label for a duration: 30 -> "30m", 60 -> "1h", 90 -> "1.5h"."""
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes / 60:g}h"


def slot_index(snapshot: AvailabilitySnapshot) -> Dict[int, TimeSlot]:
    return {slot.time_value: slot for slot in snapshot.time_slots}


def is_court_free_for_span(slots: Dict[int, TimeSlot], court_id: str, start_minutes: int, duration_minutes: int) -> bool:
    """True if every 30-minute sub-slot of the span exists and is free for the court."""
    for minute in range(start_minutes, start_minutes + duration_minutes, config.SLOT_MINUTES):
        slot = slots.get(minute)
        if slot is None or not slot.court_availability.get(court_id, False):
            return False
    return True


def _price_for(
    pricing: PricingService, court: Court, start: datetime, end: datetime, user_id: str | None
) -> float | None:
    try:
        price = float(pricing.calculate_price(court, start.isoformat(), end.isoformat(), user_id))
    except Exception as e:
        logger.warning(f"Pricing failed for court {court.id} {start.isoformat()} - {end.isoformat()}: {e}")
        return None

    if not math.isfinite(price) or price < 0:
        logger.warning(f"Discarding invalid price {price} for court {court.id}")
        return None
    return price


def get_available_durations(
    snapshot: AvailabilitySnapshot,
    courts: Sequence[Court],
    start_time: str | None,
    court_id: str | None = None,
    pricing: PricingService | None = None,
    user_id: str | None = None,
    tz_name: str | None = None,
    now: datetime | None = None,
    grace_minutes: int = config.PAST_SLOT_GRACE_MINUTES,
) -> List[Duration]:
    """Lists the bookable durations starting at `start_time`, with prices.

    With `court_id`, each duration must be free on that court and is priced for it.
    Without it, a duration is kept if at least one active court is free for the whole
    span, priced as the mean over those courts. Bad input yields an empty list; a pricing
    failure only drops the affected duration.
    """
    day_result = parse_date(snapshot.date)
    if not day_result.ok:
        logger.warning(f"No valid snapshot date for durations: {day_result.error}")
        return []
    day: date = day_result.value

    start_result = parse_instant(start_time, day, tz_name)
    if not start_result.ok:
        logger.warning(f"Cannot compute durations: {start_result.error}")
        return []
    start: datetime = start_result.value

    start_minutes = minutes_on_date(start, day, tz_name)
    if not 0 <= start_minutes < config.MINUTES_PER_DAY:
        logger.warning(f"Start time {start_time} is not on {day.isoformat()}")
        return []

    if is_time_slot_in_past(day, start_minutes, grace_minutes, tz_name, now):
        logger.debug(f"Start time {start_time} has already passed")
        return []

    active_courts = [court for court in courts if court.id in snapshot.active_court_ids]
    if court_id is not None:
        active_courts = [court for court in active_courts if court.id == court_id]
        if not active_courts:
            logger.warning(f"Court {court_id} is not an active court of venue {snapshot.venue_id}")
            return []

    pricing = pricing or DynamicPricingService(tz_name=tz_name)
    slots = slot_index(snapshot)
    result = []

    for minutes in config.DURATION_CANDIDATES:
        if start_minutes + minutes > config.MINUTES_PER_DAY:
            logger.warning(f"Skipping {minutes}m from {start_time}: end time falls on the next day")
            continue
        end = start + timedelta(minutes=minutes)

        free_courts = [court for court in active_courts if is_court_free_for_span(slots, court.id, start_minutes, minutes)]
        if not free_courts:
            continue

        prices = []
        priced_court_ids = []
        for court in free_courts:
            price = _price_for(pricing, court, start, end, user_id)
            if price is not None:
                prices.append(price)
                priced_court_ids.append(court.id)
        if not prices:
            continue

        result.append(
            Duration(
                label=duration_label(minutes),
                minutes=minutes,
                price=prices[0] if court_id is not None else round_price(sum(prices) / len(prices)),
                court_id=court_id,
                available_court_ids=priced_court_ids,
            )
        )

    return result
