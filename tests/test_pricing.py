import pytest

from court_scheduler.models import Court
from court_scheduler.pricing import DynamicPricingService, round_price

TZ = "Europe/Berlin"


@pytest.fixture
def court():
    return Court(
        id="Court-1",
        name="Court 1",
        venueId="venue-1",
        pricing={
            "baseHourlyRate": 30,
            "peakHourRate": 45,
            "weekendRate": 50,
            "memberDiscount": 20,
            "specialRates": {
                "morning": {"name": "Early bird", "rate": 20, "applyDays": ["tuesday"], "startTime": "08:00", "endTime": "10:00"},
            },
        },
    )


@pytest.fixture
def service():
    return DynamicPricingService(tz_name=TZ)


def test_base_rate_for_an_hour(service, court):
    assert service.calculate_price(court, "2025-06-10T11:00:00+02:00", "2025-06-10T12:00:00+02:00") == 30


def test_default_rate_card(service):
    plain = Court(id="c", venue_id="v")

    assert service.calculate_price(plain, "2025-06-10T11:00:00+02:00", "2025-06-10T12:30:00+02:00") == 45


def test_peak_hour_rate(service, court):
    assert service.calculate_price(court, "2025-06-10T18:00:00+02:00", "2025-06-10T19:30:00+02:00") == 67.5


def test_special_rate_overrides(service, court):
    assert service.calculate_price(court, "2025-06-10T09:00:00+02:00", "2025-06-10T10:00:00+02:00") == 20


def test_special_rate_only_on_listed_days(service, court):
    # Wednesday morning: no special rate, not peak
    assert service.calculate_price(court, "2025-06-11T09:00:00+02:00", "2025-06-11T10:00:00+02:00") == 30


def test_weekend_rate(service, court):
    # Saturday evening would be peak on a weekday
    assert service.calculate_price(court, "2025-06-14T18:00:00+02:00", "2025-06-14T19:00:00+02:00") == 50


def test_member_discount(court):
    service = DynamicPricingService(is_member=lambda user_id: user_id == "member-1", tz_name=TZ)

    assert service.calculate_price(court, "2025-06-10T11:00:00+02:00", "2025-06-10T12:00:00+02:00", "member-1") == 24
    assert service.calculate_price(court, "2025-06-10T11:00:00+02:00", "2025-06-10T12:00:00+02:00", "guest") == 30


def test_minimum_price(service):
    cheap = Court(id="c", venue_id="v", pricing={"baseHourlyRate": 0.5})

    assert service.calculate_price(cheap, "2025-06-10T11:00:00+02:00", "2025-06-10T11:30:00+02:00") == 1


def test_invalid_input_raises(service, court):
    with pytest.raises(ValueError):
        service.calculate_price(court, "soon", "2025-06-10T12:00:00+02:00")
    with pytest.raises(ValueError):
        service.calculate_price(court, "2025-06-10T12:00:00+02:00", "2025-06-10T11:00:00+02:00")


def test_round_price_half_up():
    assert round_price(1.005) == 1.01
    assert round_price(10.125) == 10.13
    assert round_price(17.5) == 17.5
