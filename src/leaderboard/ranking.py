"""Group submissions by user and rank the resulting aggregates."""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence, Union

from .models import RankingType, SubmissionRecord, UserAggregate
from .stats import compute_stats, recent_performance

_SORT_KEYS: Dict[RankingType, Callable[[UserAggregate], object]] = {
    # More quizzes wins at an equal average.
    RankingType.AVERAGE_SCORE: lambda u: (u.stats.average_percentage, u.stats.total_quizzes),
    RankingType.TOTAL_SCORE: lambda u: u.stats.total_score,
    RankingType.QUIZ_COUNT: lambda u: u.stats.total_quizzes,
    RankingType.STREAK: lambda u: u.stats.recent_streak,
    RankingType.RECENT_PERFORMANCE: lambda u: u.recent_performance,
}


def group_by_user(submissions: Sequence[SubmissionRecord]) -> List[UserAggregate]:
    """Return one aggregate per ``user_id`` in first-seen order.

    Identity fields come from the last record seen for each user.
    """

    users: Dict[str, UserAggregate] = {}
    for record in submissions:
        user = users.get(record.user_id)
        if user is None:
            user = users[record.user_id] = UserAggregate(user_id=record.user_id)
        user.reg_number = record.reg_number
        user.full_name = record.full_name
        user.department = record.department
        user.email = record.email
        user.submissions.append(record)
    return list(users.values())


def rank(
    submissions: Sequence[SubmissionRecord],
    ranking_type: Union[RankingType, str] = RankingType.AVERAGE_SCORE,
) -> List[UserAggregate]:
    """Build ranked :class:`UserAggregate` rows from raw submissions.

    Sorting is stable and descending, so users with equal keys keep their
    first-seen order.  Ranks run 1..N with no gaps.
    """

    key = _SORT_KEYS[RankingType(ranking_type)]
    users = group_by_user(submissions)
    for user in users:
        user.stats = compute_stats(user.submissions)
        user.recent_performance = recent_performance(user.submissions)

    ranked = sorted(users, key=key, reverse=True)
    for position, user in enumerate(ranked, start=1):
        user.rank = position
    return ranked


__all__ = ["group_by_user", "rank"]
