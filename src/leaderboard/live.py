"""Push refreshed leaderboards to subscribers when quizzes change.

Firestore change notifications carry no diff and tend to arrive in bursts,
so each subscription debounces them: a notification (re)starts a timer and
only the last one in a burst triggers a refresh.  Every notification also
bumps a generation counter; a refresh that finishes after a newer
notification, or after unsubscribe, is dropped instead of delivered.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Optional

from src import config

_LOG = logging.getLogger(__name__)

LeaderboardCallback = Callable[[Dict[str, Any]], None]


class _Subscription:
    def __init__(
        self,
        broker: "LiveUpdateBroker",
        callback: LeaderboardCallback,
        department: Optional[str],
    ) -> None:
        self._broker = broker
        self._callback = callback
        self._department = department
        # Re-entrant so a callback may unsubscribe from inside delivery.
        self._lock = threading.RLock()
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._release: Optional[Callable[[], None]] = None
        self.closed = False

    def start(self) -> None:
        release = self._broker.source.listen(self.notify)
        with self._lock:
            if self.closed:
                release()
                return
            self._release = release

    def notify(self) -> None:
        delay = self._broker.debounce_seconds
        with self._lock:
            if self.closed:
                return
            self._generation += 1
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if delay > 0:
                self._timer = threading.Timer(delay, self._run, args=(generation,))
                self._timer.daemon = True
                self._timer.start()
                return
        self._run(generation)

    def _is_current(self, generation: int) -> bool:
        return not self.closed and generation == self._generation

    def _run(self, generation: int) -> None:
        with self._lock:
            if not self._is_current(generation):
                return

        logger = self._broker.logger
        logger.info("Leaderboard data updated, regenerating")
        try:
            payload = asyncio.run(self._broker.service.refresh(self._department))
        except Exception as exc:
            logger.error("Error regenerating leaderboards: %s", exc, exc_info=True)
            payload = {
                "department": None,
                "global": None,
                "error": str(exc) or type(exc).__name__,
                "last_updated": datetime.now().astimezone(),
            }

        with self._lock:
            if not self._is_current(generation):
                logger.debug("Dropping superseded leaderboard refresh %d", generation)
                return
            try:
                self._callback(payload)
            except Exception:
                logger.error("Leaderboard subscriber raised", exc_info=True)

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            release, self._release = self._release, None
        if release is not None:
            try:
                release()
            except Exception:
                self._broker.logger.warning("Failed to release leaderboard listener", exc_info=True)


class LiveUpdateBroker:
    """Fan quiz collection changes out to leaderboard subscribers."""

    def __init__(
        self,
        service: Any,
        source: Any = None,
        *,
        debounce_seconds: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.service = service
        self.source = source if source is not None else service.source
        self.debounce_seconds = (
            config.LIVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.logger = logger or _LOG

    def subscribe(
        self, callback: LeaderboardCallback, department: Optional[str] = None
    ) -> Callable[[], None]:
        """Start delivering refreshed leaderboards to ``callback``.

        The callback receives ``{"department", "global", "last_updated"}``,
        or ``{"department": None, "global": None, "error", "last_updated"}``
        when a refresh fails.  Returns an idempotent unsubscribe function;
        once it returns, ``callback`` is not called again.
        """

        subscription = _Subscription(self, callback, department)
        try:
            subscription.start()
        except Exception:
            self.logger.error("Error setting up leaderboard listener", exc_info=True)
            subscription.close()
        return subscription.close

    @contextmanager
    def subscription(
        self, callback: LeaderboardCallback, department: Optional[str] = None
    ) -> Iterator[Callable[[], None]]:
        """Context manager form of :meth:`subscribe` that always unsubscribes."""

        unsubscribe = self.subscribe(callback, department)
        try:
            yield unsubscribe
        finally:
            unsubscribe()


__all__ = ["LiveUpdateBroker"]
