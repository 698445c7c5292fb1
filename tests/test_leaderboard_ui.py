from datetime import datetime, timedelta, timezone

import pytest

from src import config, leaderboard_ui
from src.leaderboard.models import (
    LeaderboardResult,
    RankingType,
    SubmissionRecord,
    TimePeriod,
    UserAggregate,
    UserStats,
)
from src.leaderboard.service import LeaderboardService


class DummySt:
    def __init__(self):
        self.calls = []
        self.frames = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args))

        return record

    def dataframe(self, df, **kwargs):
        self.frames.append(df)


def _result(users, **kwargs):
    return LeaderboardResult(
        scope=kwargs.pop("scope", "department"),
        department="Physics",
        ranking_type=RankingType.AVERAGE_SCORE,
        time_period=TimePeriod.THIS_WEEK,
        users=users,
        total_participants=len(users),
        **kwargs,
    )


def test_rank_badge():
    assert [leaderboard_ui.rank_badge(r) for r in (1, 2, 3, 7, 11)] == ["🥇", "🥈", "🥉", "⭐", ""]


def test_render_leaderboard_marks_current_user(monkeypatch):
    dummy = DummySt()
    monkeypatch.setattr(leaderboard_ui, "st", dummy)
    users = [
        UserAggregate(user_id="u1", full_name="Ada", stats=UserStats(average_percentage=91), rank=1),
        UserAggregate(user_id="u2", full_name="Ben", stats=UserStats(average_percentage=75), rank=2),
    ]

    df = leaderboard_ui.render_leaderboard(_result(users), current_user_id="u2")

    assert list(df["full_name"]) == ["Ada", "Ben (You)"]
    assert list(df["badge"]) == ["🥇", "🥈"]
    assert dummy.frames and dummy.frames[0] is df
    assert ("subheader", ("Physics Department Leaderboard",)) in dummy.calls


def test_render_leaderboard_empty_state(monkeypatch):
    dummy = DummySt()
    monkeypatch.setattr(leaderboard_ui, "st", dummy)

    assert leaderboard_ui.render_leaderboard(_result([], error="offline", scope="global")) is None

    names = [name for name, _ in dummy.calls]
    assert "warning" in names
    assert "info" in names
    assert ("subheader", ("Global Leaderboard",)) in dummy.calls
    assert dummy.frames == []


NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class PageSt(DummySt):
    def __init__(self, session_state, scope="department"):
        super().__init__()
        self.session_state = session_state
        self.scope = scope
        self.radio_options = None
        self.metrics = []

    def selectbox(self, label, options, **kwargs):
        return options[0]

    def radio(self, label, options, **kwargs):
        self.radio_options = list(options)
        return self.scope if self.scope in options else options[0]

    def columns(self, count):
        return [DummyColumn(self.metrics) for _ in range(count)]


class DummyColumn:
    def __init__(self, metrics):
        self.metrics = metrics

    def metric(self, label, value, **kwargs):
        self.metrics.append((label, value))


class CountingSource:
    def __init__(self, submissions):
        self.submissions = submissions
        self.calls = 0

    def fetch_all(self):
        self.calls += 1
        return list(self.submissions)


class FakeLive:
    def __init__(self, payload=None):
        self.payload = payload
        self.watched = []

    def watch(self, department=None):
        self.watched.append(department)

    def latest(self, department=None):
        return self.payload


def _submission(user, dept, pct):
    return SubmissionRecord(
        submission_id=f"{user}-{pct}",
        user_id=user,
        quiz_id="q1",
        score=pct // 10,
        total=10,
        percentage=pct,
        department=dept,
        full_name=user.title(),
        submitted_at=NOW - timedelta(hours=1),
    )


PAGE_SUBMISSIONS = [
    _submission("ada", "Physics", 95),
    _submission("ben", "Physics", 80),
    _submission("cy", "Biology", 85),
]


@pytest.fixture
def page(monkeypatch):
    def _setup(session_state, scope="department", submissions=PAGE_SUBMISSIONS, live=None):
        dummy = PageSt(session_state, scope)
        source = CountingSource(submissions)
        live = live or FakeLive()
        service = LeaderboardService(source, clock=lambda: NOW, timeout=5)
        monkeypatch.setattr(leaderboard_ui, "st", dummy)
        monkeypatch.setattr(leaderboard_ui, "get_leaderboard_service", lambda: service)
        monkeypatch.setattr(leaderboard_ui, "get_live_leaderboards", lambda: live)
        return dummy, source, live

    return _setup


def test_render_page_department_scope_with_position(page):
    dummy, source, live = page({"user_id": "ben", "department": "Physics"})

    leaderboard_ui.render_page()

    assert dummy.radio_options == ["department", "global"]
    assert dummy.metrics == [("Department rank", "#2"), ("Global rank", "#3")]
    assert ("subheader", ("Physics Department Leaderboard",)) in dummy.calls
    assert list(dummy.frames[0]["full_name"]) == ["Ada", "Ben (You)"]
    # One fetch for each side of the position lookup, none for the display.
    assert source.calls == 2
    assert live.watched == ["Physics"]


def test_render_page_global_scope_respects_display_limit(page, monkeypatch):
    monkeypatch.setattr(config, "GLOBAL_LIMIT", 2)
    dummy, _, _ = page({"user_id": "cy", "department": "Biology"}, scope="global")

    leaderboard_ui.render_page()

    assert ("subheader", ("Global Leaderboard",)) in dummy.calls
    assert list(dummy.frames[0]["full_name"]) == ["Ada", "Cy (You)"]
    assert ("Global rank", "#2") in dummy.metrics


def test_render_page_user_without_submissions_shows_placeholder(page):
    dummy, _, _ = page({"user_id": "newbie", "department": "Physics"})

    leaderboard_ui.render_page()

    assert dummy.metrics == [("Department rank", "-"), ("Global rank", "-")]
    assert list(dummy.frames[0]["full_name"]) == ["Ada", "Ben"]


def test_render_page_without_department_is_global_only(page):
    dummy, source, live = page({}, scope="department")

    leaderboard_ui.render_page()

    assert dummy.radio_options == ["global"]
    assert dummy.metrics == []
    assert ("subheader", ("Global Leaderboard",)) in dummy.calls
    assert source.calls == 1
    assert live.watched == [None]


def test_render_page_flags_newer_live_results(page):
    newer = {"department": None, "global": None, "last_updated": NOW + timedelta(minutes=1)}
    dummy, _, _ = page({}, live=FakeLive(newer))

    leaderboard_ui.render_page()

    assert ("info", ("New quiz results are in. Rerun the page to see them.",)) in dummy.calls


def test_render_leaderboard_tolerates_unknown_labels(monkeypatch):
    dummy = DummySt()
    monkeypatch.setattr(leaderboard_ui, "st", dummy)
    result = LeaderboardResult(
        scope="global", ranking_type="fastest", time_period="decade", error="bad ranking"
    )

    assert leaderboard_ui.render_leaderboard(result) is None
    assert any(name == "caption" and "fastest" in args[0] for name, args in dummy.calls)


class RecordingBroker:
    def __init__(self):
        self.subscriptions = []
        self.released = []

    def subscribe(self, callback, department=None):
        self.subscriptions.append((callback, department))
        return lambda: self.released.append(department)


def test_live_leaderboards_subscribes_once_per_department():
    broker = RecordingBroker()
    live = leaderboard_ui.LiveLeaderboards(broker)

    live.watch("Physics")
    live.watch("Physics")
    live.watch(None)
    assert [dept for _, dept in broker.subscriptions] == ["Physics", None]
    assert live.latest("Physics") is None

    callback, _ = broker.subscriptions[0]
    callback({"last_updated": NOW})
    assert live.latest("Physics") == {"last_updated": NOW}
    assert live.latest(None) is None

    live.close()
    assert set(broker.released) == {"Physics", None}
    assert live.latest("Physics") is None
