"""Streamlit rendering for department and global leaderboards."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import streamlit as st

from src import config

from .leaderboard import (
    Diagnostics,
    FirestoreSubmissionSource,
    LeaderboardResult,
    LeaderboardService,
    LiveUpdateBroker,
    RankingType,
    TimePeriod,
)

_LOG = logging.getLogger(__name__)

_SCOPE_LABELS = {"department": "Department", "global": "Global"}


@st.cache_resource
def get_leaderboard_service() -> LeaderboardService:
    """Return the process-wide service backed by Firestore."""

    return LeaderboardService(FirestoreSubmissionSource(diagnostics=Diagnostics()))


class LiveLeaderboards:
    """Keep the latest pushed leaderboards for each watched department.

    Streamlit reruns the page script per interaction, so subscriptions live
    here, shared across reruns, and pages only read the newest payload.
    """

    def __init__(self, broker: LiveUpdateBroker) -> None:
        self.broker = broker
        self._lock = threading.Lock()
        self._latest: Dict[Optional[str], Dict[str, Any]] = {}
        self._unsubscribe: Dict[Optional[str], Callable[[], None]] = {}

    def watch(self, department: Optional[str] = None) -> None:
        with self._lock:
            if department in self._unsubscribe:
                return

            def _store(payload: Dict[str, Any]) -> None:
                with self._lock:
                    self._latest[department] = payload

            self._unsubscribe[department] = self.broker.subscribe(_store, department)
        _LOG.info("Watching leaderboard updates for %s", department or "all departments")

    def latest(self, department: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._latest.get(department)

    def close(self) -> None:
        with self._lock:
            unsubscribers = list(self._unsubscribe.values())
            self._unsubscribe.clear()
            self._latest.clear()
        for unsubscribe in unsubscribers:
            unsubscribe()


@st.cache_resource
def get_live_leaderboards() -> LiveLeaderboards:
    return LiveLeaderboards(LiveUpdateBroker(get_leaderboard_service()))


def rank_badge(rank: int) -> str:
    if rank == 1:
        return "🥇"
    if rank == 2:
        return "🥈"
    if rank == 3:
        return "🥉"
    if rank <= 10:
        return "⭐"
    return ""


def _label(enum_cls, value) -> str:
    try:
        return enum_cls(value).label
    except ValueError:
        return str(value)


def render_leaderboard(result: LeaderboardResult, current_user_id: Optional[str] = None):
    """Render one leaderboard and return the DataFrame that was shown."""

    title = (
        f"{result.department} Department" if result.scope == "department" else "Global"
    )
    st.subheader(f"{title} Leaderboard")
    st.caption(
        f"{len(result.users)} of {result.total_participants} participants • "
        f"{_label(RankingType, result.ranking_type)} • {_label(TimePeriod, result.time_period)}"
    )

    if result.error:
        st.warning(f"Could not refresh the leaderboard ({result.error}).")
    if not result.has_data:
        st.info(
            "No rankings available for the selected period. "
            "Be the first to take a quiz and claim the top spot!"
        )
        return None

    df = result.to_frame()
    df.insert(0, "badge", df["rank"].map(rank_badge))
    if current_user_id:
        you = [u.user_id == current_user_id for u in result.users]
        df["full_name"] = [
            f"{name} (You)" if is_you else name for name, is_you in zip(df["full_name"], you)
        ]
    st.dataframe(df, hide_index=True)
    return df


def render_user_position(position: dict) -> None:
    dept_col, global_col = st.columns(2)
    for col, key in ((dept_col, "department"), (global_col, "global")):
        entry = position.get(key) or {}
        rank = entry.get("rank")
        col.metric(
            f"{_SCOPE_LABELS[key]} rank",
            f"#{rank}" if rank else "-",
            help=f"{entry.get('total_participants', 0)} participants",
        )


def _notify_if_stale(department: Optional[str], shown: LeaderboardResult) -> None:
    live = get_live_leaderboards()
    live.watch(department)
    payload = live.latest(department)
    if payload and shown.generated_at and payload["last_updated"] > shown.generated_at:
        st.info("New quiz results are in. Rerun the page to see them.")


def render_page() -> None:
    """Render leaderboards for the signed-in student."""

    user_id = st.session_state.get("user_id")
    department = st.session_state.get("department")

    ranking_type = st.selectbox(
        "Ranking", list(RankingType), format_func=lambda r: r.label
    )
    time_period = st.selectbox(
        "Time period", list(TimePeriod), format_func=lambda p: p.label
    )
    scopes = ["department", "global"] if department else ["global"]
    scope = st.radio("Scope", scopes, format_func=_SCOPE_LABELS.get, horizontal=True)
    limit = config.DEPARTMENT_LIMIT if scope == "department" else config.GLOBAL_LIMIT

    service = get_leaderboard_service()
    if user_id and department:
        # The position boards already hold the full ranking; show their top rows.
        position = asyncio.run(
            service.get_user_position(user_id, department, ranking_type, time_period)
        )
        render_user_position(position)
        board = position[scope]["board"]
        result = replace(board, users=board.users[:limit])
    elif scope == "department":
        result = asyncio.run(
            service.generate_department_leaderboard(department, ranking_type, time_period)
        )
    else:
        result = asyncio.run(service.generate_global_leaderboard(ranking_type, time_period))

    render_leaderboard(result, current_user_id=user_id)
    _notify_if_stale(department, result)


__all__ = [
    "LiveLeaderboards",
    "get_leaderboard_service",
    "get_live_leaderboards",
    "rank_badge",
    "render_leaderboard",
    "render_page",
    "render_user_position",
]
