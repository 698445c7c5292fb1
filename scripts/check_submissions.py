"""Print diagnostics for quiz submissions.

Usage: ``python scripts/check_submissions.py QUIZ_ID [QUIZ_ID ...]``.
With no arguments the global leaderboard is generated instead.
"""

import asyncio
import logging
import sys

from src.leaderboard import Diagnostics, FirestoreSubmissionSource, LeaderboardService


def main(argv) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    diagnostics = Diagnostics()

    if argv:
        for quiz_id in argv:
            rows = diagnostics.check_submissions(quiz_id)
            invalid = [row["id"] for row in rows if not diagnostics.validate_submission(row)["is_valid"]]
            print(f"{quiz_id}: {len(rows)} submissions, {len(invalid)} incomplete {invalid}")
        return 0

    service = LeaderboardService(FirestoreSubmissionSource(diagnostics=diagnostics))
    result = asyncio.run(service.generate_global_leaderboard())
    if result.error:
        print(f"Leaderboard failed: {result.error}")
        return 1
    print(result.to_frame().to_string(index=False))
    return 0


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    sys.exit(main(sys.argv[1:]))
