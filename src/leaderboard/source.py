"""Firestore access for quiz submissions.

Submissions live under ``quizzes/{quiz_id}/submissions``.  There is no
collection-group index on ``submissions``, so a full read lists the quizzes
first and then each quiz's sub-collection.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from looma.firebase import QUIZZES_COL, SUBMISSIONS_COL, get_db
from src import config

from .diagnostics import Diagnostics
from .models import SubmissionRecord
from .stats import newest_first

_LOG = logging.getLogger(__name__)


class FirestoreSubmissionSource:
    """Read and watch quiz submissions through the Firebase Admin SDK."""

    def __init__(
        self,
        db: Any = None,
        *,
        diagnostics: Optional[Diagnostics] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._db = db
        self.diagnostics = diagnostics
        self.logger = logger or _LOG

    def _get_db(self):
        db = self._db if self._db is not None else get_db()
        if db is None:
            raise RuntimeError("Firestore client is not initialized")
        return db

    def _quiz_submissions(self, db: Any, quiz_id: str, quiz_title: Optional[str]) -> List[SubmissionRecord]:
        # Ordered queries drop documents without ``submittedAt``, so sort locally.
        snapshots = (
            db.collection(QUIZZES_COL).document(quiz_id).collection(SUBMISSIONS_COL).stream()
        )
        records = []
        for snap in snapshots:
            data = snap.to_dict() or {}
            if self.diagnostics is not None:
                self.diagnostics.validate_submission(data)
            records.append(SubmissionRecord.from_document(snap.id, quiz_id, data, quiz_title))
        return newest_first(records)

    def fetch_all(self) -> List[SubmissionRecord]:
        """Return every submission of every quiz.

        A quiz whose submissions cannot be read is skipped with a warning;
        failing to list the quizzes themselves raises.
        """

        db = self._get_db()
        quizzes = list(db.collection(QUIZZES_COL).stream())
        if not quizzes:
            self.logger.info("No quizzes found")
            return []

        def _read(quiz) -> List[SubmissionRecord]:
            quiz_data = quiz.to_dict() or {}
            try:
                return self._quiz_submissions(db, quiz.id, quiz_data.get("title"))
            except Exception as exc:
                self.logger.warning("Error fetching submissions for quiz %s: %s", quiz.id, exc)
                return []

        workers = min(config.FETCH_WORKERS, len(quizzes))
        submissions: List[SubmissionRecord] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="quiz-submissions") as pool:
            # map() yields in quiz order however the reads interleave.
            for records in pool.map(_read, quizzes):
                submissions.extend(records)

        self.logger.info(
            "Found %d submissions across %d quizzes", len(submissions), len(quizzes)
        )
        return submissions

    def listen(self, on_change: Callable[[], None]) -> Callable[[], None]:
        """Call ``on_change`` whenever the quiz collection changes.

        The callback gets no diff.  Firestore delivers the initial snapshot
        too, so ``on_change`` fires once right after registration.  Returns a
        function that releases the watch.
        """

        db = self._get_db()

        def _on_snapshot(_docs, _changes, _read_time):
            on_change()

        watch = db.collection(QUIZZES_COL).on_snapshot(_on_snapshot)
        return watch.unsubscribe


__all__ = ["FirestoreSubmissionSource"]
