from datetime import date, datetime, time
from zoneinfo import ZoneInfo

TZ = "Europe/Berlin"
DAY = date(2025, 6, 10)  # a Tuesday


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Aware local datetime in the test timezone."""
    return datetime.combine(day, time(hour, minute)).replace(tzinfo=ZoneInfo(TZ))
