import pytest

from court_scheduler.models import Court, Venue


@pytest.fixture
def courts():
    return [
        Court(id="Court-1", name="Court 1", venue_id="venue-1"),
        Court(id="Court-2", name="Court 2", venue_id="venue-1"),
    ]


@pytest.fixture
def court_ids(courts):
    return [court.id for court in courts]


@pytest.fixture
def venue():
    return Venue(id="venue-1", name="Riverside Sports")
