"""Data types shared by the leaderboard engine.

Submission documents are read straight from Firestore, where any field may
be missing while a write is still in flight.  :meth:`SubmissionRecord.from_document`
fills in defaults so the aggregation code never has to guess.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

DEFAULT_DEPARTMENT = "Unknown"
DEFAULT_REG_NUMBER = "N/A"
DEFAULT_FULL_NAME = "Unknown User"
DEFAULT_EMAIL = "No email"

SCOPE_DEPARTMENT = "department"
SCOPE_GLOBAL = "global"


class RankingType(str, Enum):
    """Statistic used as the primary sort key of a leaderboard."""

    AVERAGE_SCORE = "average_score"
    TOTAL_SCORE = "total_score"
    QUIZ_COUNT = "quiz_count"
    STREAK = "streak"
    RECENT_PERFORMANCE = "recent_performance"

    @property
    def label(self) -> str:
        return _RANKING_LABELS[self]


class TimePeriod(str, Enum):
    """Relative window submissions are filtered to before ranking."""

    ALL_TIME = "all_time"
    THIS_MONTH = "this_month"
    THIS_WEEK = "this_week"
    TODAY = "today"

    @property
    def label(self) -> str:
        return _PERIOD_LABELS[self]


_RANKING_LABELS = {
    RankingType.AVERAGE_SCORE: "Average Score",
    RankingType.TOTAL_SCORE: "Total Score",
    RankingType.QUIZ_COUNT: "Quiz Count",
    RankingType.STREAK: "Current Streak",
    RankingType.RECENT_PERFORMANCE: "Recent Performance",
}

_PERIOD_LABELS = {
    TimePeriod.ALL_TIME: "All Time",
    TimePeriod.THIS_MONTH: "This Month",
    TimePeriod.THIS_WEEK: "This Week",
    TimePeriod.TODAY: "Today",
}


def ensure_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """Return ``value`` as an aware datetime, or ``None`` if it is unusable.

    Firestore hands back ``DatetimeWithNanoseconds`` (a ``datetime``
    subclass); older exports stored epoch seconds or ISO strings.
    """

    if isinstance(value, datetime):
        return ensure_utc(value)
    if hasattr(value, "to_datetime"):
        try:
            return ensure_utc(value.to_datetime())
        except Exception:
            return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def _coerce_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return default


def _coerce_str(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


@dataclass(frozen=True)
class SubmissionRecord:
    """One quiz attempt by one user."""

    submission_id: str
    user_id: str
    quiz_id: str
    score: int = 0
    total: int = 0
    percentage: int = 0
    time_spent_seconds: int = 0
    submitted_at: Optional[datetime] = None
    department: str = DEFAULT_DEPARTMENT
    reg_number: str = DEFAULT_REG_NUMBER
    full_name: str = DEFAULT_FULL_NAME
    email: str = DEFAULT_EMAIL
    quiz_title: Optional[str] = None

    @classmethod
    def from_document(
        cls,
        doc_id: str,
        quiz_id: str,
        data: Optional[Mapping[str, Any]],
        quiz_title: Optional[str] = None,
    ) -> "SubmissionRecord":
        """Build a record from a ``quizzes/{quiz}/submissions`` document."""

        data = data or {}
        total = max(_coerce_int(data.get("total")), 0)
        # ``percentage`` was derived at write time; only a zero total overrides it.
        percentage = _coerce_int(data.get("percentage")) if total else 0
        return cls(
            submission_id=str(doc_id),
            user_id=_coerce_str(data.get("userId"), ""),
            quiz_id=str(quiz_id),
            score=max(_coerce_int(data.get("score")), 0),
            total=total,
            percentage=percentage,
            time_spent_seconds=max(_coerce_int(data.get("timeSpent")), 0),
            submitted_at=coerce_timestamp(data.get("submittedAt")),
            department=_coerce_str(data.get("department"), DEFAULT_DEPARTMENT),
            reg_number=_coerce_str(data.get("regNumber"), DEFAULT_REG_NUMBER),
            full_name=_coerce_str(data.get("fullName"), DEFAULT_FULL_NAME),
            email=_coerce_str(data.get("email"), DEFAULT_EMAIL),
            quiz_title=quiz_title,
        )


@dataclass(frozen=True)
class UserStats:
    total_quizzes: int = 0
    total_score: int = 0
    average_score: float = 0.0
    average_percentage: float = 0.0
    highest_score: int = 0
    lowest_score: int = 0
    recent_streak: int = 0
    total_points: int = 0


@dataclass
class UserAggregate:
    """One participant's row in a leaderboard, rebuilt on every run."""

    user_id: str
    reg_number: str = DEFAULT_REG_NUMBER
    full_name: str = DEFAULT_FULL_NAME
    department: str = DEFAULT_DEPARTMENT
    email: str = DEFAULT_EMAIL
    submissions: List[SubmissionRecord] = field(default_factory=list)
    stats: UserStats = field(default_factory=UserStats)
    recent_performance: float = 0.0
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Flat camelCase mapping in the shape the web client consumed."""

        return {
            "userId": self.user_id,
            "regNumber": self.reg_number,
            "fullName": self.full_name,
            "department": self.department,
            "email": self.email,
            "rank": self.rank,
            "totalQuizzes": self.stats.total_quizzes,
            "totalScore": self.stats.total_score,
            "averageScore": self.stats.average_score,
            "averagePercentage": self.stats.average_percentage,
            "highestScore": self.stats.highest_score,
            "lowestScore": self.stats.lowest_score,
            "recentStreak": self.stats.recent_streak,
            "totalPoints": self.stats.total_points,
            "recentPerformance": self.recent_performance,
        }


_FRAME_COLUMNS = [
    "rank",
    "full_name",
    "reg_number",
    "department",
    "average_percentage",
    "total_quizzes",
    "recent_streak",
    "total_points",
]


@dataclass
class LeaderboardResult:
    scope: str
    ranking_type: RankingType
    time_period: TimePeriod
    users: List[UserAggregate] = field(default_factory=list)
    total_participants: int = 0
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    department: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.users)

    def find_user(self, user_id: str) -> Optional[UserAggregate]:
        return next((u for u in self.users if u.user_id == user_id), None)

    def to_frame(self) -> pd.DataFrame:
        """Return the ranked users as a display-ready DataFrame."""

        if not self.users:
            return pd.DataFrame(columns=_FRAME_COLUMNS)
        rows = [
            {
                "rank": u.rank,
                "full_name": u.full_name,
                "reg_number": u.reg_number,
                "department": u.department,
                "average_percentage": u.stats.average_percentage,
                "total_quizzes": u.stats.total_quizzes,
                "recent_streak": u.stats.recent_streak,
                "total_points": u.stats.total_points,
            }
            for u in self.users
        ]
        return pd.DataFrame(rows, columns=_FRAME_COLUMNS)


__all__ = [
    "DEFAULT_DEPARTMENT",
    "DEFAULT_EMAIL",
    "DEFAULT_FULL_NAME",
    "DEFAULT_REG_NUMBER",
    "SCOPE_DEPARTMENT",
    "SCOPE_GLOBAL",
    "LeaderboardResult",
    "RankingType",
    "SubmissionRecord",
    "TimePeriod",
    "UserAggregate",
    "UserStats",
    "coerce_timestamp",
    "ensure_utc",
]
