"""Per-user statistics over quiz submissions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from .models import SubmissionRecord, UserStats, ensure_utc

STREAK_THRESHOLD = 70
RECENT_WINDOW = 5

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _recency_key(record: SubmissionRecord) -> Tuple[bool, datetime]:
    # A pending server timestamp means "just now", so it sorts as newest.
    if record.submitted_at is None:
        return (True, _OLDEST)
    return (False, ensure_utc(record.submitted_at))


def newest_first(submissions: Sequence[SubmissionRecord]) -> List[SubmissionRecord]:
    """Return a copy of ``submissions`` ordered by ``submitted_at`` descending.

    Ties keep their input order.
    """

    return sorted(submissions, key=_recency_key, reverse=True)


def bonus_points(percentage: int) -> int:
    if percentage >= 90:
        return 5
    if percentage >= 80:
        return 3
    if percentage >= 70:
        return 1
    return 0


def recent_streak(submissions: Sequence[SubmissionRecord]) -> int:
    """Count the most recent submissions in a row scoring at least 70%."""

    streak = 0
    for record in newest_first(submissions):
        if record.percentage < STREAK_THRESHOLD:
            break
        streak += 1
    return streak


def recent_performance(
    submissions: Sequence[SubmissionRecord], window: int = RECENT_WINDOW
) -> float:
    """Mean percentage of the ``window`` most recent submissions."""

    recent = newest_first(submissions)[:window]
    if not recent:
        return 0.0
    return sum(r.percentage for r in recent) / len(recent)


def compute_stats(submissions: Sequence[SubmissionRecord]) -> UserStats:
    """Reduce one user's submissions to a :class:`UserStats` summary.

    Empty input yields all-zero stats.  The input sequence is never
    reordered.
    """

    if not submissions:
        return UserStats()

    scores = [r.score for r in submissions]
    count = len(submissions)
    total_score = sum(scores)
    average_percentage = sum(r.percentage for r in submissions) / count

    return UserStats(
        total_quizzes=count,
        total_score=total_score,
        average_score=round(total_score / count, 2),
        average_percentage=round(average_percentage, 2),
        highest_score=max(scores),
        lowest_score=min(scores),
        recent_streak=recent_streak(submissions),
        total_points=sum(r.score + bonus_points(r.percentage) for r in submissions),
    )


__all__ = [
    "RECENT_WINDOW",
    "STREAK_THRESHOLD",
    "bonus_points",
    "compute_stats",
    "newest_first",
    "recent_performance",
    "recent_streak",
]
