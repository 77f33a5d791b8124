from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from court_scheduler import config


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    HOLDING = "holding"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that block a court for the booked span.
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.PENDING, BookingStatus.HOLDING})


class CourtStatus(str, Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class BookingFlowType(str, Enum):
    DATE_COURT_TIME_DURATION = "date_court_time_duration"
    DATE_TIME_DURATION_COURT = "date_time_duration_court"
    DATE_TIME_COURT_DURATION = "date_time_court_duration"


class StepLabel(str, Enum):
    DATE = "Date"
    COURT = "Court"
    TIME = "Time"
    DURATION = "Duration"
    PAYMENT = "Payment"


# --- Records owned by external stores ---


class _ExternalRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SpecialRate(_ExternalRecord):
    name: str
    rate: float
    apply_days: List[str] | None = Field(default=None, alias="applyDays")
    start_time: str | None = Field(default=None, alias="startTime")  # HH:MM
    end_time: str | None = Field(default=None, alias="endTime")  # HH:MM


class Pricing(_ExternalRecord):
    base_hourly_rate: float = Field(default=config.DEFAULT_HOURLY_RATE, alias="baseHourlyRate")
    peak_hour_rate: float | None = Field(default=None, alias="peakHourRate")
    weekend_rate: float | None = Field(default=None, alias="weekendRate")
    member_discount: float | None = Field(default=None, alias="memberDiscount")  # percent
    special_rates: Dict[str, SpecialRate] = Field(default_factory=dict, alias="specialRates")


class Court(_ExternalRecord):
    id: str
    name: str = ""
    venue_id: str = Field(alias="venueId")
    status: CourtStatus = CourtStatus.ACTIVE
    pricing: Pricing = Field(default_factory=Pricing)

    @property
    def is_active(self) -> bool:
        return self.status == CourtStatus.ACTIVE


class DayHours(_ExternalRecord):
    open: str  # HH:MM
    close: str  # HH:MM


class VenueSettings(_ExternalRecord):
    booking_flow: str | None = Field(default=None, alias="bookingFlow")


class Venue(_ExternalRecord):
    id: str
    name: str = ""
    settings: VenueSettings | None = None
    # Weekday name (lowercase) -> hours, None meaning closed that day.
    operating_hours: Dict[str, DayHours | None] | None = Field(default=None, alias="operatingHours")


class Booking(_ExternalRecord):
    id: str | None = None
    court_id: str = Field(alias="courtId")
    venue_id: str | None = Field(default=None, alias="venueId")
    date: str | None = None  # YYYY-MM-DD
    start_time: str = Field(alias="startTime")  # ISO instant or HH:MM
    end_time: str = Field(alias="endTime")  # ISO instant or HH:MM
    status: BookingStatus = BookingStatus.CONFIRMED
    user_id: str | None = Field(default=None, alias="userId")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES


class BookingSelection(BaseModel):
    """The booking wizard's current, possibly incomplete, selection."""

    date: str | None = None
    venue_id: str | None = None
    court_id: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    user_id: str | None = None


# --- Records produced by the engine ---


class _EngineRecord(BaseModel):
    model_config = ConfigDict(frozen=True)


class TimeSlot(_EngineRecord):
    time: str  # HH:MM
    time_value: int  # minutes since midnight
    court_availability: Mapping[str, bool]
    has_available_courts: bool

    @field_validator("court_availability", mode="after")
    @classmethod
    def _read_only_availability(cls, value: Mapping[str, bool]) -> Mapping[str, bool]:
        return MappingProxyType(dict(value))

    @field_serializer("court_availability")
    def _dump_availability(self, value: Mapping[str, bool]) -> Dict[str, bool]:
        return dict(value)


class FlowStep(_EngineRecord):
    step: int
    label: StepLabel
    icon: str


class AvailabilitySnapshot(_EngineRecord):
    date: str = ""
    venue_id: str = ""
    venue_name: str = ""
    time_slots: Tuple[TimeSlot, ...] = ()
    active_court_ids: Tuple[str, ...] = ()
    bookings: Tuple[Booking, ...] = ()
    flow_type: BookingFlowType = BookingFlowType.DATE_COURT_TIME_DURATION
    loading: bool = False
    error: str | None = None
    version: int = 0

    def slot_at(self, minutes: int) -> TimeSlot | None:
        for slot in self.time_slots:
            if slot.time_value == minutes:
                return slot
        return None


class SlotView(_EngineRecord):
    label: str
    value: int
    available: bool


class Duration(_EngineRecord):
    label: str
    minutes: int
    price: float
    court_id: str | None = None
    available_court_ids: List[str] = Field(default_factory=list)


class CourtAvailabilityStatus(_EngineRecord):
    court_id: str
    court_name: str
    available: bool
    fully_available: bool
    available_time_slots: List[str]
    unavailable_time_slots: List[str]
