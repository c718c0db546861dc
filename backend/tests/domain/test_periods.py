"""Tests for period id computation against the reference timezone."""

from datetime import UTC, datetime, timedelta, timezone
from zoneinfo import ZoneInfoNotFoundError

import pytest

from app.domain.entitlements import PeriodPolicy
from app.domain.periods import REQUEST_PERIOD_PREFIX, PeriodClock

pytestmark = pytest.mark.unit


def test_daily_period_is_utc_date_by_default():
    clock = PeriodClock()
    assert clock.daily_period_id(datetime(2030, 6, 15, 23, 59, 59, tzinfo=UTC)) == "2030-06-15"
    assert clock.daily_period_id(datetime(2030, 6, 16, 0, 0, 0, tzinfo=UTC)) == "2030-06-16"


def test_naive_datetime_is_treated_as_utc():
    clock = PeriodClock("UTC")
    assert clock.daily_period_id(datetime(2030, 6, 15, 23, 30)) == "2030-06-15"


def test_client_offset_does_not_change_the_period():
    """The same instant expressed in different offsets maps to one period."""
    clock = PeriodClock("UTC")
    instant = datetime(2030, 6, 15, 22, 0, tzinfo=UTC)
    tokyo = instant.astimezone(timezone(timedelta(hours=9)))  # already 2030-06-16 locally
    assert tokyo.date().isoformat() == "2030-06-16"
    assert clock.daily_period_id(tokyo) == clock.daily_period_id(instant) == "2030-06-15"


def test_reference_timezone_moves_the_boundary():
    clock = PeriodClock("America/New_York")
    # 03:30 UTC on the 16th is still the 15th in New York (EDT, UTC-4)
    assert clock.daily_period_id(datetime(2030, 6, 16, 3, 30, tzinfo=UTC)) == "2030-06-15"
    assert clock.daily_period_id(datetime(2030, 6, 16, 4, 0, tzinfo=UTC)) == "2030-06-16"


def test_period_id_for_daily_policy():
    clock = PeriodClock()
    now = datetime(2030, 1, 2, 12, 0, tzinfo=UTC)
    assert clock.period_id(PeriodPolicy.DAILY, now=now, request_token="ignored") == "2030-01-02"


def test_per_request_uses_the_token():
    clock = PeriodClock()
    assert clock.period_id(PeriodPolicy.PER_REQUEST, request_token="abc123") == "req-abc123"
    assert clock.period_id(PeriodPolicy.PER_REQUEST, request_token="  abc123 ") == "req-abc123"


def test_per_request_without_token_is_fresh_each_time():
    clock = PeriodClock()
    first = clock.period_id(PeriodPolicy.PER_REQUEST)
    second = clock.period_id(PeriodPolicy.PER_REQUEST, request_token="   ")
    assert first.startswith(REQUEST_PERIOD_PREFIX)
    assert second.startswith(REQUEST_PERIOD_PREFIX)
    assert first != second


def test_period_end_is_next_midnight_in_reference_timezone():
    assert PeriodClock("UTC").period_end("2030-06-15") == datetime(2030, 6, 16, tzinfo=UTC)
    # Midnight in New York during EDT is 04:00 UTC
    assert PeriodClock("America/New_York").period_end("2030-06-15") == datetime(2030, 6, 16, 4, tzinfo=UTC)


def test_period_end_is_none_for_request_periods():
    assert PeriodClock().period_end("req-abc") is None


def test_unknown_timezone_is_rejected():
    with pytest.raises(ZoneInfoNotFoundError):
        PeriodClock("Mars/Olympus_Mons")


@pytest.mark.parametrize("token", ["b:tarot_reading:req-c", "a b", "x/y", "a\nb"])
def test_per_request_token_rejects_key_separators(token):
    with pytest.raises(ValueError, match="Invalid request token"):
        PeriodClock().period_id(PeriodPolicy.PER_REQUEST, request_token=token)


def test_per_request_token_allows_dashes_and_underscores():
    assert PeriodClock().period_id(PeriodPolicy.PER_REQUEST, request_token="draw_1-A") == "req-draw_1-A"
