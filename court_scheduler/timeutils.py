import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from court_scheduler import config

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing a boundary value.

    `substituted` is set when `value` is a fallback rather than the parsed input.
    """

    value: Any = None
    error: str | None = None
    substituted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def get_user_timezone() -> str:
    """Returns the viewer's IANA timezone, defaulting to the configured one."""
    candidate = os.environ.get("TZ") or config.DEFAULT_TIMEZONE
    try:
        ZoneInfo(candidate)
        return candidate
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Could not resolve timezone '{candidate}', using {config.DEFAULT_TIMEZONE}")
        return config.DEFAULT_TIMEZONE


def get_zone(tz_name: str | None = None) -> ZoneInfo:
    return ZoneInfo(tz_name or get_user_timezone())


def now_in(tz_name: str | None = None) -> datetime:
    """Current time in the given (or viewer's) timezone."""
    return datetime.now(get_zone(tz_name))


def format_minutes(minutes: int) -> str:
    """Formats minutes since midnight as HH:MM (e.g. 510 -> "08:30")."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_hhmm(value: str) -> int:
    """Parses an HH:MM string into minutes since midnight. Raises ValueError on bad input."""
    parsed = datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour * 60 + parsed.minute


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def local_midnight(day: date, tz_name: str | None = None) -> datetime:
    return datetime.combine(day, time.min).replace(tzinfo=get_zone(tz_name))


def slot_datetime(day: date, minutes: int, tz_name: str | None = None) -> datetime:
    """Wall-clock datetime of a slot on `day` in the given timezone."""
    return local_midnight(day, tz_name) + timedelta(minutes=minutes)


def _from_iso(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_instant(value: str | None, on_date: date | None = None, tz_name: str | None = None) -> ParseResult:
    """Parses an ISO instant, or an HH:MM time on `on_date`, into an aware local datetime.

    Naive ISO values are interpreted in the given timezone.
    """
    if not value:
        return ParseResult(error="missing time value")

    zone = get_zone(tz_name)
    text = value.strip()

    if len(text) <= 5 and ":" in text:
        if on_date is None:
            return ParseResult(error=f"time '{text}' given without a date")
        try:
            minutes = parse_hhmm(text)
        except ValueError:
            return ParseResult(error=f"invalid time '{text}'")
        return ParseResult(value=slot_datetime(on_date, minutes, tz_name))

    try:
        parsed = _from_iso(text)
    except ValueError:
        return ParseResult(error=f"invalid instant '{text}'")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return ParseResult(value=parsed.astimezone(zone))


def parse_date(value: Any, fallback: date | None = None) -> ParseResult:
    """Parses a YYYY-MM-DD value, substituting `fallback` (and logging it) on failure."""
    if isinstance(value, datetime):
        return ParseResult(value=value.date())
    if isinstance(value, date):
        return ParseResult(value=value)

    error = None
    if not value:
        error = "missing date"
    else:
        try:
            return ParseResult(value=date.fromisoformat(str(value).strip()[:10]))
        except ValueError:
            error = f"invalid date '{value}'"

    if fallback is None:
        return ParseResult(error=error)

    logger.warning(f"{error}, falling back to {fallback.isoformat()}")
    return ParseResult(value=fallback, error=error, substituted=True)


def minutes_on_date(moment: datetime, day: date, tz_name: str | None = None) -> int:
    """Minutes between local midnight of `day` and `moment`.

    May be negative or exceed a day's worth of minutes for instants on other dates.
    """
    delta = moment.astimezone(get_zone(tz_name)) - local_midnight(day, tz_name)
    return int(delta.total_seconds() // 60)


def is_time_slot_in_past(
    day: date,
    minutes: int,
    grace_minutes: int = config.PAST_SLOT_GRACE_MINUTES,
    tz_name: str | None = None,
    now: datetime | None = None,
) -> bool:
    """True if the local time is already past the slot start plus the grace window."""
    current = (now or now_in(tz_name)).astimezone(get_zone(tz_name))
    slot_with_grace = slot_datetime(day, minutes, tz_name) + timedelta(minutes=grace_minutes)
    return current > slot_with_grace


def create_time_range(start_minutes: int, duration_minutes: int) -> List[str]:
    """Lists the HH:MM labels of every 30-minute sub-slot in [start, start + duration)."""
    return [
        format_minutes(minute)
        for minute in range(start_minutes, start_minutes + duration_minutes, config.SLOT_MINUTES)
    ]
