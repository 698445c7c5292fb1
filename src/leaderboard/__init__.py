"""Leaderboard ranking and aggregation for Looma quizzes."""

from .diagnostics import Diagnostics
from .live import LiveUpdateBroker
from .models import (
    LeaderboardResult,
    RankingType,
    SubmissionRecord,
    TimePeriod,
    UserAggregate,
    UserStats,
)
from .periods import filter_by_period
from .ranking import rank
from .service import LeaderboardService
from .source import FirestoreSubmissionSource
from .stats import compute_stats

__all__ = [
    "Diagnostics",
    "FirestoreSubmissionSource",
    "LeaderboardResult",
    "LeaderboardService",
    "LiveUpdateBroker",
    "RankingType",
    "SubmissionRecord",
    "TimePeriod",
    "UserAggregate",
    "UserStats",
    "compute_stats",
    "filter_by_period",
    "rank",
]
