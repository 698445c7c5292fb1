"""Time-window filtering for leaderboard submissions."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import List, Optional, Sequence, Union

from .models import SubmissionRecord, TimePeriod, ensure_utc


def _localize(wall: datetime, now: datetime) -> datetime:
    """Attach ``now``'s zone to the naive wall-clock time ``wall``.

    ``datetime.now().astimezone()`` yields a fixed offset that is only right
    for today, so when ``now`` carries the system's current offset the
    system's DST rules decide the offset for ``wall`` instead.
    """

    tz = now.tzinfo
    if isinstance(tz, timezone) and now.utcoffset() == now.astimezone().utcoffset():
        return wall.astimezone()
    return wall.replace(tzinfo=tz)


def period_start(period: Union[TimePeriod, str], now: datetime) -> Optional[datetime]:
    """Return the inclusive start of ``period`` relative to ``now``.

    Midnight is the wall-clock midnight in ``now``'s own timezone, with the
    offset that applied on that day; a naive ``now`` is read as UTC.
    ``ALL_TIME`` has no start and returns ``None``.
    """

    period = TimePeriod(period)
    if period is TimePeriod.ALL_TIME:
        return None

    now = ensure_utc(now)
    day = now.replace(tzinfo=None).date()
    if period is TimePeriod.THIS_WEEK:
        # weekday(): Monday is 0, Sunday is 6.
        day -= timedelta(days=(day.weekday() + 1) % 7)
    elif period is TimePeriod.THIS_MONTH:
        day = day.replace(day=1)
    return _localize(datetime.combine(day, time.min), now)


def filter_by_period(
    submissions: Sequence[SubmissionRecord],
    period: Union[TimePeriod, str],
    now: datetime,
) -> List[SubmissionRecord]:
    """Keep the submissions made on or after the start of ``period``.

    Records without a timestamp count as submitted at ``now`` and are always
    kept.  There is no upper bound, so submissions stamped slightly after
    ``now`` by a skewed server clock are not lost.
    """

    start = period_start(period, now)
    if start is None:
        return list(submissions)
    return [
        record
        for record in submissions
        if record.submitted_at is None or ensure_utc(record.submitted_at) >= start
    ]


__all__ = ["filter_by_period", "period_start"]
