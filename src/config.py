"""Application configuration.

Leaderboard tunables are read from the environment once at import time so
any module may import them without touching the Streamlit entrypoint.
"""

from __future__ import annotations

import logging
import os

_LOG = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _LOG.warning("%s=%r is not a number; using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        _LOG.warning("%s=%r is not an integer; using %s", name, raw, default)
        return default
    if value <= 0:
        _LOG.warning("%s must be positive (got %s); using %s", name, value, default)
        return default
    return value


# Seconds before a Firestore read is abandoned and reported as an error result.
FETCH_TIMEOUT_SECONDS = _env_float("LEADERBOARD_FETCH_TIMEOUT", 20.0)

# Trailing-edge delay used to coalesce bursts of quiz collection changes.
LIVE_DEBOUNCE_SECONDS = _env_float("LEADERBOARD_DEBOUNCE_SECONDS", 1.5)

DEPARTMENT_LIMIT = _env_int("LEADERBOARD_DEPARTMENT_LIMIT", 50)
GLOBAL_LIMIT = _env_int("LEADERBOARD_GLOBAL_LIMIT", 100)
# Parallel readers for per-quiz submission sub-collections.
FETCH_WORKERS = _env_int("LEADERBOARD_FETCH_WORKERS", 8)

# Large enough that any participant can be located in a full leaderboard.
POSITION_LIMIT = _env_int("LEADERBOARD_POSITION_LIMIT", 1000)


__all__ = [
    "FETCH_TIMEOUT_SECONDS",
    "LIVE_DEBOUNCE_SECONDS",
    "DEPARTMENT_LIMIT",
    "GLOBAL_LIMIT",
    "POSITION_LIMIT",
    "FETCH_WORKERS",
]
