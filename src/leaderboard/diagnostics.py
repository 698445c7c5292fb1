"""Diagnostics for quiz submission data.

A :class:`Diagnostics` instance is handed to the components that want it;
nothing here registers itself globally.
"""

from __future__ import annotations

import logging
import numbers
from typing import Any, Dict, List, Mapping, Optional

from looma.firebase import QUIZZES_COL, SUBMISSIONS_COL, get_db

_LOG = logging.getLogger(__name__)

_PLACEHOLDER_REG_NUMBERS = {"", "anonymous"}
_PLACEHOLDER_EMAILS = {"", "no email provided"}


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class Diagnostics:
    """Submission checks that report through an injected logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, *, db: Any = None) -> None:
        self.logger = logger or _LOG
        self._db = db

    def _get_db(self):
        return self._db if self._db is not None else get_db()

    def validate_submission(self, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Check a submission document for missing or placeholder fields.

        Returns ``{"is_valid": bool, "checks": {field: bool}, "data": data}``.
        """

        data = dict(data or {})
        reg_number = str(data.get("regNumber") or "").strip()
        email = str(data.get("email") or "").strip()
        checks = {
            "regNumber": reg_number.casefold() not in _PLACEHOLDER_REG_NUMBERS,
            "email": email.casefold() not in _PLACEHOLDER_EMAILS,
            "percentage": _is_number(data.get("percentage")) and data["percentage"] >= 0,
            "timeSpent": _is_number(data.get("timeSpent")) and data["timeSpent"] >= 0,
            "score": _is_number(data.get("score")) and data["score"] >= 0,
            "total": _is_number(data.get("total")) and data["total"] > 0,
        }
        is_valid = all(checks.values())
        if not is_valid:
            failed = ", ".join(name for name, ok in checks.items() if not ok)
            self.logger.debug("Submission failed checks: %s", failed)
        return {"is_valid": is_valid, "checks": checks, "data": data}

    def submission_metrics(
        self,
        correct: int,
        total: int,
        time_limit_minutes: float,
        time_left_seconds: Optional[float] = None,
    ) -> Dict[str, int]:
        """Return the score fields a quiz attempt should be stored with."""

        percentage = round(correct / total * 100) if total > 0 else 0
        time_spent = max(0, int(time_limit_minutes * 60 - (time_left_seconds or 0)))
        metrics = {
            "score": correct,
            "total": total,
            "percentage": percentage,
            "timeSpent": time_spent,
            "timeSpentMinutes": round(time_spent / 60),
        }
        self.logger.debug(
            "Score %s/%s = %s%%, time spent %ss", correct, total, percentage, time_spent
        )
        return metrics

    def check_submissions(self, quiz_id: str) -> List[Dict[str, Any]]:
        """Read one quiz's submissions and log a summary line for each."""

        db = self._get_db()
        if db is None:
            self.logger.warning("Firestore not initialized; cannot inspect quiz %s", quiz_id)
            return []
        try:
            snapshots = list(
                db.collection(QUIZZES_COL).document(quiz_id).collection(SUBMISSIONS_COL).stream()
            )
        except Exception:
            self.logger.error("Failed to read submissions for quiz %s", quiz_id, exc_info=True)
            return []

        self.logger.info("Quiz %s has %d submissions", quiz_id, len(snapshots))
        rows: List[Dict[str, Any]] = []
        for index, snap in enumerate(snapshots, start=1):
            data = snap.to_dict() or {}
            self.logger.info(
                "Submission %d (%s): regNumber=%s percentage=%s timeSpent=%s submittedAt=%s",
                index,
                snap.id,
                data.get("regNumber"),
                data.get("percentage"),
                data.get("timeSpent"),
                data.get("submittedAt"),
            )
            rows.append({"id": snap.id, **data})
        return rows


__all__ = ["Diagnostics"]
