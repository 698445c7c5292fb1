"""Department and global leaderboards over Firestore submissions.

Generation is fail-soft: a failed fetch or computation comes back as an
empty :class:`LeaderboardResult` with ``error`` set, so UI code can always
render something.  Only missing arguments raise.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from src import config

from .models import (
    SCOPE_DEPARTMENT,
    SCOPE_GLOBAL,
    LeaderboardResult,
    RankingType,
    SubmissionRecord,
    TimePeriod,
)
from .periods import filter_by_period
from .ranking import rank

_LOG = logging.getLogger(__name__)

# Not the loop's default executor: ``asyncio.run`` joins that one on exit,
# which would make a timed-out read block the caller anyway.
_FETCH_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="leaderboard-fetch")


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _coerce_enum(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


class LeaderboardService:
    """Fetch, filter and rank submissions for one leaderboard request."""

    def __init__(
        self,
        source: Any,
        *,
        timeout: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source = source
        self.timeout = config.FETCH_TIMEOUT_SECONDS if timeout is None else timeout
        self.clock = clock or _local_now
        self.logger = logger or _LOG

    async def _fetch_all(self) -> List[SubmissionRecord]:
        # The Admin SDK blocks, so keep it off the event loop.
        loop = asyncio.get_running_loop()
        fetch = loop.run_in_executor(_FETCH_EXECUTOR, self.source.fetch_all)
        if self.timeout and self.timeout > 0:
            try:
                return await asyncio.wait_for(fetch, self.timeout)
            except asyncio.TimeoutError:
                raise TimeoutError(
                    f"Fetching submissions timed out after {self.timeout:g}s"
                ) from None
        return await fetch

    def _build(
        self,
        submissions: List[SubmissionRecord],
        *,
        scope: str,
        department: Optional[str],
        ranking_type: RankingType,
        time_period: TimePeriod,
        limit: int,
        now: datetime,
    ) -> LeaderboardResult:
        in_period = filter_by_period(submissions, time_period, now)
        ranked = rank(in_period, ranking_type)
        return LeaderboardResult(
            scope=scope,
            department=department,
            ranking_type=ranking_type,
            time_period=time_period,
            users=ranked[: max(limit, 0)],
            total_participants=len(ranked),
            generated_at=now,
        )

    async def generate_department_leaderboard(
        self,
        department: str,
        ranking_type: Union[RankingType, str] = RankingType.AVERAGE_SCORE,
        time_period: Union[TimePeriod, str] = TimePeriod.ALL_TIME,
        limit: Optional[int] = None,
    ) -> LeaderboardResult:
        """Rank the users of one department.

        Raises ``ValueError`` when ``department`` is empty; every other
        failure is reported through ``LeaderboardResult.error``.
        """

        if not department:
            raise ValueError("Department is required")
        limit = config.DEPARTMENT_LIMIT if limit is None else limit
        now = self.clock()
        try:
            ranking_type = RankingType(ranking_type)
            time_period = TimePeriod(time_period)
            submissions = await self._fetch_all()
            in_department = [s for s in submissions if s.department == department]
            self.logger.info(
                "Found %d submissions for %s department", len(in_department), department
            )
            result = self._build(
                in_department,
                scope=SCOPE_DEPARTMENT,
                department=department,
                ranking_type=ranking_type,
                time_period=time_period,
                limit=limit,
                now=now,
            )
        except Exception as exc:
            self.logger.error(
                "Error generating %s leaderboard: %s", department, exc, exc_info=True
            )
            return LeaderboardResult(
                scope=SCOPE_DEPARTMENT,
                department=department,
                ranking_type=_coerce_enum(RankingType, ranking_type, RankingType.AVERAGE_SCORE),
                time_period=_coerce_enum(TimePeriod, time_period, TimePeriod.ALL_TIME),
                generated_at=now,
                error=str(exc) or type(exc).__name__,
            )

        self.logger.info(
            "%s leaderboard generated: %d of %d users",
            department,
            len(result.users),
            result.total_participants,
        )
        return result

    async def generate_global_leaderboard(
        self,
        ranking_type: Union[RankingType, str] = RankingType.AVERAGE_SCORE,
        time_period: Union[TimePeriod, str] = TimePeriod.ALL_TIME,
        limit: Optional[int] = None,
    ) -> LeaderboardResult:
        """Rank every user across all departments."""

        limit = config.GLOBAL_LIMIT if limit is None else limit
        now = self.clock()
        try:
            ranking_type = RankingType(ranking_type)
            time_period = TimePeriod(time_period)
            submissions = await self._fetch_all()
            result = self._build(
                submissions,
                scope=SCOPE_GLOBAL,
                department=None,
                ranking_type=ranking_type,
                time_period=time_period,
                limit=limit,
                now=now,
            )
        except Exception as exc:
            self.logger.error("Error generating global leaderboard: %s", exc, exc_info=True)
            return LeaderboardResult(
                scope=SCOPE_GLOBAL,
                ranking_type=_coerce_enum(RankingType, ranking_type, RankingType.AVERAGE_SCORE),
                time_period=_coerce_enum(TimePeriod, time_period, TimePeriod.ALL_TIME),
                generated_at=now,
                error=str(exc) or type(exc).__name__,
            )

        self.logger.info(
            "Global leaderboard generated: %d of %d users",
            len(result.users),
            result.total_participants,
        )
        return result

    async def get_user_position(
        self,
        user_id: str,
        department: str,
        ranking_type: Union[RankingType, str] = RankingType.AVERAGE_SCORE,
        time_period: Union[TimePeriod, str] = TimePeriod.ALL_TIME,
    ) -> Dict[str, Dict[str, Any]]:
        """Locate ``user_id`` in its department and in the global leaderboard.

        ``rank`` and ``stats`` are ``None`` for a user without submissions.
        Each side also carries the ranked ``board`` it was found in, so a
        caller can display it without fetching again.
        """

        if not user_id or not department:
            raise ValueError("user_id and department are required")

        department_board, global_board = await asyncio.gather(
            self.generate_department_leaderboard(
                department, ranking_type, time_period, config.POSITION_LIMIT
            ),
            self.generate_global_leaderboard(ranking_type, time_period, config.POSITION_LIMIT),
        )

        def _position(board: LeaderboardResult) -> Dict[str, Any]:
            entry = board.find_user(user_id)
            return {
                "rank": entry.rank if entry else None,
                "total_participants": board.total_participants,
                "stats": entry,
                "has_data": board.has_data,
                "board": board,
            }

        return {"department": _position(department_board), "global": _position(global_board)}

    async def refresh(self, department: Optional[str] = None) -> Dict[str, Any]:
        """Regenerate the global and, if given, department leaderboards."""

        if department:
            department_board, global_board = await asyncio.gather(
                self.generate_department_leaderboard(department),
                self.generate_global_leaderboard(),
            )
        else:
            department_board = None
            global_board = await self.generate_global_leaderboard()
        return {
            "department": department_board,
            "global": global_board,
            "last_updated": self.clock(),
        }


__all__ = ["LeaderboardService"]
