import logging
import math
import sys
from datetime import datetime, timezone
from typing import Callable, Protocol

from court_scheduler import config
from court_scheduler.models import Court, Pricing, SpecialRate
from court_scheduler.timeutils import format_minutes, parse_instant, weekday_name

logger = logging.getLogger(__name__)


class PricingService(Protocol):
    def calculate_price(self, court: Court, start_iso: str, end_iso: str, user_id: str | None = None) -> float:
        ...


def round_price(value: float) -> float:
    """Rounds half-up to 2 decimals, nudged by machine epsilon so 1.005 becomes 1.01."""
    return math.floor((value + sys.float_info.epsilon) * 100 + 0.5) / 100


class DynamicPricingService:
    """Prices a court booking from the court's rate card.

    Weekend rates win outright on weekends; otherwise a peak-hour rate, then the first
    matching special rate, override the base hourly rate.
    """

    def __init__(self, is_member: Callable[[str], bool] | None = None, tz_name: str | None = None):
        self.is_member = is_member or (lambda user_id: False)
        self.tz_name = tz_name

    def calculate_price(self, court: Court, start_iso: str, end_iso: str, user_id: str | None = None) -> float:
        start = parse_instant(start_iso, tz_name=self.tz_name)
        end = parse_instant(end_iso, tz_name=self.tz_name)
        if not start.ok or not end.ok:
            raise ValueError(start.error or end.error)

        elapsed = end.value.astimezone(timezone.utc) - start.value.astimezone(timezone.utc)
        duration_hours = elapsed.total_seconds() / 3600
        if duration_hours <= 0:
            raise ValueError(f"End time {end_iso} is not after start time {start_iso}")

        pricing = court.pricing
        rate = self._hourly_rate(pricing, start.value)
        total = rate * duration_hours

        if user_id and pricing.member_discount and self.is_member(user_id):
            total -= total * (pricing.member_discount / 100)

        return max(round_price(total), config.MINIMUM_PRICE)

    def _hourly_rate(self, pricing: Pricing, start: datetime) -> float:
        is_weekend = start.weekday() >= 5
        if is_weekend and pricing.weekend_rate:
            return pricing.weekend_rate

        rate = pricing.base_hourly_rate
        if self._is_peak_hour(start) and pricing.peak_hour_rate:
            rate = pricing.peak_hour_rate

        special = self._applicable_special_rate(pricing, start)
        if special:
            rate = special.rate
        return rate

    @staticmethod
    def _is_peak_hour(moment: datetime) -> bool:
        if moment.weekday() >= 5:
            return False
        peak_start, peak_end = config.PEAK_HOURS
        return peak_start <= moment.hour < peak_end

    @staticmethod
    def _applicable_special_rate(pricing: Pricing, moment: datetime) -> SpecialRate | None:
        day_name = weekday_name(moment.date())
        time_string = format_minutes(moment.hour * 60 + moment.minute)

        for special in pricing.special_rates.values():
            if special.apply_days and day_name not in special.apply_days:
                continue
            if special.start_time and special.end_time:
                if time_string < special.start_time or time_string >= special.end_time:
                    continue
            return special
        return None
