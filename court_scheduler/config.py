import logging
import os
from typing import List, Tuple

logger = logging.getLogger(__name__)

# --- Operating hours ---
OPENING_HOUR = int(os.environ.get("SCHEDULER_OPENING_HOUR", "8"))
CLOSING_HOUR = int(os.environ.get("SCHEDULER_CLOSING_HOUR", "22"))
SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

# --- Past slot handling ---
PAST_SLOT_GRACE_MINUTES = int(os.environ.get("SCHEDULER_GRACE_MINUTES", "10"))
DEFAULT_TIMEZONE = os.environ.get("SCHEDULER_TIMEZONE", "Europe/Berlin")

# --- Durations ---
DURATION_CANDIDATES: List[int] = list(range(30, 301, 30))

# --- Pricing ---
DEFAULT_HOURLY_RATE = 30.0
PEAK_HOURS: Tuple[int, int] = (17, 21)
MINIMUM_PRICE = 1.0

# --- Booking store API ---
BOOKINGS_API_URL = os.environ.get("BOOKINGS_API_URL")
HTTP_TIMEOUT = 10

# --- User-visible errors ---
NO_ACTIVE_COURTS_ERROR = "No active courts found for this venue"
AVAILABILITY_LOAD_ERROR = "Failed to load availability data"

if OPENING_HOUR >= CLOSING_HOUR:
    logger.warning(f"Opening hour {OPENING_HOUR} is not before closing hour {CLOSING_HOUR}. No slots will be generated.")
