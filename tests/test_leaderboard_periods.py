import time
from datetime import datetime, timedelta, timezone

import pytest

from src.leaderboard.models import SubmissionRecord, TimePeriod
from src.leaderboard.periods import filter_by_period, period_start

# A Wednesday.
NOW = datetime(2024, 5, 15, 12, 30, tzinfo=timezone.utc)


def _at(ts, sid):
    return SubmissionRecord(submission_id=sid, user_id="u", quiz_id="q", percentage=50, submitted_at=ts)


def test_all_time_returns_input_unchanged():
    subs = [_at(NOW - timedelta(days=400), "old"), _at(None, "pending"), _at(NOW, "now")]
    assert filter_by_period(subs, TimePeriod.ALL_TIME, NOW) == subs


def test_period_starts():
    assert period_start(TimePeriod.TODAY, NOW) == datetime(2024, 5, 15, tzinfo=timezone.utc)
    assert period_start(TimePeriod.THIS_WEEK, NOW) == datetime(2024, 5, 12, tzinfo=timezone.utc)
    assert period_start(TimePeriod.THIS_MONTH, NOW) == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert period_start(TimePeriod.ALL_TIME, NOW) is None


def test_week_starts_today_on_sunday():
    sunday = datetime(2024, 5, 12, 9, 0, tzinfo=timezone.utc)
    assert period_start("this_week", sunday) == datetime(2024, 5, 12, tzinfo=timezone.utc)


def test_today_boundary_is_inclusive():
    midnight = datetime(2024, 5, 15, tzinfo=timezone.utc)
    at_midnight = _at(midnight, "in")
    just_before = _at(midnight - timedelta(milliseconds=1), "out")
    kept = filter_by_period([just_before, at_midnight], TimePeriod.TODAY, NOW)
    assert kept == [at_midnight]


def test_missing_timestamp_always_included():
    pending = _at(None, "pending")
    for period in TimePeriod:
        assert pending in filter_by_period([pending], period, NOW)


def test_midnight_uses_timezone_of_now():
    tz = timezone(timedelta(hours=-5))
    local_now = datetime(2024, 5, 15, 1, 0, tzinfo=tz)
    # 04:59 UTC is 23:59 the previous day at UTC-5.
    late_yesterday = _at(datetime(2024, 5, 15, 4, 59, tzinfo=timezone.utc), "y")
    early_today = _at(datetime(2024, 5, 15, 5, 0, tzinfo=timezone.utc), "t")
    assert filter_by_period([late_yesterday, early_today], "today", local_now) == [early_today]


def test_naive_timestamps_read_as_utc():
    naive = _at(datetime(2024, 5, 3, 8, 0), "naive")
    assert filter_by_period([naive], TimePeriod.THIS_MONTH, NOW) == [naive]
    assert filter_by_period([naive], TimePeriod.THIS_WEEK, NOW) == []


def test_unknown_period_rejected():
    with pytest.raises(ValueError):
        filter_by_period([], "this_decade", NOW)


def _new_york():
    zoneinfo = pytest.importorskip("zoneinfo")
    try:
        return zoneinfo.ZoneInfo("America/New_York")
    except zoneinfo.ZoneInfoNotFoundError:
        pytest.skip("tz database not available")


def test_month_start_uses_that_days_offset_across_dst():
    # DST began on 10 March 2024; 1 March was still EST (UTC-5).
    now = datetime(2024, 3, 15, 12, 0, tzinfo=_new_york())
    assert period_start(TimePeriod.THIS_MONTH, now) == datetime(2024, 3, 1, 5, 0, tzinfo=timezone.utc)
    assert period_start(TimePeriod.TODAY, now) == datetime(2024, 3, 15, 4, 0, tzinfo=timezone.utc)

    late_february = _at(datetime(2024, 3, 1, 4, 30, tzinfo=timezone.utc), "feb")
    first_of_march = _at(datetime(2024, 3, 1, 5, 0, tzinfo=timezone.utc), "mar")
    kept = filter_by_period([late_february, first_of_march], TimePeriod.THIS_MONTH, now)
    assert kept == [first_of_march]


@pytest.fixture
def new_york_local_time(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    if datetime(2024, 3, 15, 12, 0).astimezone().utcoffset() != timedelta(hours=-4):
        monkeypatch.undo()
        time.tzset()
        pytest.skip("system tz database not available")
    yield
    monkeypatch.undo()
    time.tzset()


def test_week_start_with_system_local_clock(new_york_local_time):
    # The default service clock: a fixed offset (EDT here) from astimezone().
    now = datetime(2024, 3, 15, 12, 0).astimezone()
    assert now.utcoffset() == timedelta(hours=-4)
    # Sunday 10 March started in EST, before the 02:00 switch.
    assert period_start(TimePeriod.THIS_WEEK, now) == datetime(2024, 3, 10, 5, 0, tzinfo=timezone.utc)
    assert period_start(TimePeriod.THIS_MONTH, now) == datetime(2024, 3, 1, 5, 0, tzinfo=timezone.utc)
