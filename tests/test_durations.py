import logging
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from helpers import DAY, TZ, at

from court_scheduler.durations import duration_label, get_available_durations
from court_scheduler.models import AvailabilitySnapshot, Booking
from court_scheduler.occupancy import apply_bookings
from court_scheduler.slots import generate_time_slots


def _snapshot(court_ids, bookings=()):
    skeleton = generate_time_slots(DAY, court_ids, now=at(7), tz_name=TZ)
    return AvailabilitySnapshot(
        date=DAY.isoformat(),
        venue_id="venue-1",
        time_slots=apply_bookings(skeleton, list(bookings), DAY, TZ),
        active_court_ids=list(court_ids),
    )


def _minutes(start_iso, end_iso):
    return (datetime.fromisoformat(end_iso) - datetime.fromisoformat(start_iso)).seconds // 60


@pytest.fixture
def flat_pricing():
    """30 per hour for every court."""
    pricing = MagicMock()
    pricing.calculate_price.side_effect = lambda court, start, end, user_id=None: _minutes(start, end) / 2
    return pricing


def _durations(snapshot, courts, start, court_id=None, pricing=None, now=None, **kwargs):
    return get_available_durations(
        snapshot, courts, start, court_id=court_id, pricing=pricing, tz_name=TZ, now=now or at(7), **kwargs
    )


def test_duration_labels():
    assert duration_label(30) == "30m"
    assert duration_label(60) == "1h"
    assert duration_label(90) == "1.5h"
    assert duration_label(300) == "5h"


def test_all_candidates_on_a_free_court(courts, court_ids, flat_pricing):
    durations = _durations(_snapshot(court_ids), courts, "10:00", "Court-1", flat_pricing)

    assert [d.minutes for d in durations] == [30, 60, 90, 120, 150, 180, 210, 240, 270, 300]
    assert durations[1].label == "1h"
    assert durations[1].price == 30
    assert all(d.court_id == "Court-1" for d in durations)


def test_booked_start_excludes_every_duration_for_that_court(courts, court_ids, flat_pricing):
    booking = Booking(courtId="Court-1", startTime="10:00", endTime="11:00")

    durations = _durations(_snapshot(court_ids, [booking]), courts, "10:00", "Court-1", flat_pricing)

    assert durations == []


def test_each_duration_is_checked_on_its_own_span(courts, court_ids, flat_pricing):
    booking = Booking(courtId="Court-1", startTime="11:00", endTime="11:30")
    snapshot = _snapshot(court_ids, [booking])

    from_ten = [d.minutes for d in _durations(snapshot, courts, "10:00", "Court-1", flat_pricing)]
    from_half_past_eleven = [d.minutes for d in _durations(snapshot, courts, "11:30", "Court-1", flat_pricing)]

    assert from_ten == [30, 60]
    assert 90 not in from_ten
    assert 90 in from_half_past_eleven
    assert 300 in from_half_past_eleven


def test_durations_stop_at_closing_time(courts, court_ids, flat_pricing):
    durations = _durations(_snapshot(court_ids), courts, "20:00", "Court-2", flat_pricing)

    assert [d.minutes for d in durations] == [30, 60, 90, 120]


def test_any_court_mode_uses_free_courts_only(courts, court_ids, flat_pricing):
    booking = Booking(courtId="Court-1", startTime="10:00", endTime="11:00")

    durations = _durations(_snapshot(court_ids, [booking]), courts, "10:00", pricing=flat_pricing)

    assert len(durations) == 10
    assert all(d.available_court_ids == ["Court-2"] for d in durations)
    assert all(d.court_id is None for d in durations)


def test_any_court_mode_drops_durations_without_free_courts(courts, court_ids, flat_pricing):
    bookings = [
        Booking(courtId="Court-1", startTime="11:00", endTime="12:00"),
        Booking(courtId="Court-2", startTime="11:30", endTime="12:00"),
    ]

    durations = _durations(_snapshot(court_ids, bookings), courts, "10:00", pricing=flat_pricing)

    assert [d.minutes for d in durations] == [30, 60, 90]
    assert durations[-1].available_court_ids == ["Court-2"]
    assert durations[0].available_court_ids == ["Court-1", "Court-2"]


def test_any_court_mode_averages_prices(courts, court_ids):
    pricing = MagicMock()
    pricing.calculate_price.side_effect = lambda court, start, end, user_id=None: (
        10.0 if court.id == "Court-1" else 10.25
    )

    durations = _durations(_snapshot(court_ids), courts, "10:00", pricing=pricing)

    assert durations[0].price == 10.13


def test_pricing_failure_drops_only_that_court(courts, court_ids, caplog):
    def calculate_price(court, start, end, user_id=None):
        if court.id == "Court-1":
            raise ValueError("no rate card")
        return 12.0

    pricing = MagicMock()
    pricing.calculate_price.side_effect = calculate_price

    with caplog.at_level(logging.WARNING):
        durations = _durations(_snapshot(court_ids), courts, "10:00", pricing=pricing)

    assert len(durations) == 10
    assert all(d.price == 12.0 and d.available_court_ids == ["Court-2"] for d in durations)
    assert "no rate card" in caplog.text


def test_pricing_failure_drops_only_that_duration(courts, court_ids):
    def calculate_price(court, start, end, user_id=None):
        if _minutes(start, end) == 90:
            raise RuntimeError("pricing backend down")
        return 20.0

    pricing = MagicMock()
    pricing.calculate_price.side_effect = calculate_price

    durations = _durations(_snapshot(court_ids), courts, "10:00", "Court-1", pricing)

    assert [d.minutes for d in durations] == [30, 60, 120, 150, 180, 210, 240, 270, 300]


def test_invalid_prices_are_discarded(courts, court_ids):
    pricing = MagicMock()
    pricing.calculate_price.return_value = float("nan")

    assert _durations(_snapshot(court_ids), courts, "10:00", "Court-1", pricing) == []


@pytest.mark.parametrize("start", [None, "", "not a time", "27:00", "2025-06-11T10:00:00+02:00"])
def test_invalid_start_returns_empty(courts, court_ids, flat_pricing, start):
    assert _durations(_snapshot(court_ids), courts, start, "Court-1", flat_pricing) == []


def test_iso_start_matches_hhmm_start(courts, court_ids, flat_pricing):
    snapshot = _snapshot(court_ids)

    iso = _durations(snapshot, courts, "2025-06-10T08:00:00Z", "Court-1", flat_pricing)
    local = _durations(snapshot, courts, "10:00", "Court-1", flat_pricing)

    assert iso == local


def test_elapsed_start_returns_empty(courts, court_ids, flat_pricing):
    assert _durations(_snapshot(court_ids), courts, "10:00", "Court-1", flat_pricing, now=at(10, 11)) == []


def test_inactive_court_returns_empty(courts, flat_pricing):
    snapshot = _snapshot(["Court-2"])

    assert _durations(snapshot, courts, "10:00", "Court-1", flat_pricing) == []


def test_pricing_receives_court_times_and_user(courts, court_ids, flat_pricing):
    _durations(_snapshot(court_ids), courts, "10:00", "Court-1", flat_pricing, user_id="user-7")

    court, start, end, user_id = flat_pricing.calculate_price.call_args_list[0].args
    assert court.id == "Court-1"
    assert start == "2025-06-10T10:00:00+02:00"
    assert end == "2025-06-10T10:30:00+02:00"
    assert user_id == "user-7"


def test_default_pricing_service_is_used(courts, court_ids):
    durations = _durations(_snapshot(court_ids), courts, "10:00", "Court-1")

    assert durations[1].price == 30
