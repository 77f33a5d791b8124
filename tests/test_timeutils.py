import logging
from datetime import date
from unittest.mock import patch

from helpers import DAY, TZ, at

from court_scheduler import timeutils


def test_format_and_parse_minutes():
    assert timeutils.format_minutes(510) == "08:30"
    assert timeutils.parse_hhmm("21:30") == 1290


def test_parse_instant_accepts_hhmm_on_a_date():
    result = timeutils.parse_instant("10:30", DAY, TZ)

    assert result.ok
    assert result.value == at(10, 30)


def test_parse_instant_converts_utc_to_local():
    result = timeutils.parse_instant("2025-06-10T08:00:00Z", tz_name=TZ)

    assert result.value == at(10)
    assert timeutils.minutes_on_date(result.value, DAY, TZ) == 600


def test_parse_instant_naive_iso_is_local():
    result = timeutils.parse_instant("2025-06-10T10:00:00", tz_name=TZ)

    assert timeutils.minutes_on_date(result.value, DAY, TZ) == 600


def test_parse_instant_errors_are_reported_not_raised():
    assert timeutils.parse_instant(None).error == "missing time value"
    assert not timeutils.parse_instant("25:99", DAY, TZ).ok
    assert not timeutils.parse_instant("10:00", None, TZ).ok
    assert not timeutils.parse_instant("yesterday-ish", DAY, TZ).ok


def test_parse_date_substitutes_fallback_visibly(caplog):
    fallback = date(2025, 1, 1)

    with caplog.at_level(logging.WARNING):
        result = timeutils.parse_date("not-a-date", fallback=fallback)

    assert result.value == fallback
    assert result.substituted is True
    assert result.error == "invalid date 'not-a-date'"
    assert "falling back to 2025-01-01" in caplog.text


def test_parse_date_without_fallback():
    assert timeutils.parse_date("2025-06-10").value == DAY
    assert timeutils.parse_date(at(9)).value == DAY
    assert timeutils.parse_date("").ok is False


def test_is_time_slot_in_past_uses_local_time():
    # 08:30Z is 10:30 in Berlin
    now = timeutils.parse_instant("2025-06-10T08:30:00Z", tz_name=TZ).value

    assert timeutils.is_time_slot_in_past(DAY, 10 * 60, 10, TZ, now=now) is True
    assert timeutils.is_time_slot_in_past(DAY, 10 * 60 + 30, 10, TZ, now=now) is False


def test_create_time_range():
    assert timeutils.create_time_range(600, 90) == ["10:00", "10:30", "11:00"]


@patch.dict("os.environ", {"TZ": "Mars/Olympus"})
def test_get_user_timezone_falls_back_on_unknown_zone():
    assert timeutils.get_user_timezone() == timeutils.config.DEFAULT_TIMEZONE


@patch.dict("os.environ", {"TZ": "America/New_York"})
def test_get_user_timezone_reads_environment():
    assert timeutils.get_user_timezone() == "America/New_York"
