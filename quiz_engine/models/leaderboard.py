"""
Leaderboard ranking over completed submissions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .views import LeaderboardEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserAggregate:
    """Per-user totals before ranking."""
    user_id: int
    username: str
    total_score: int
    average_percentage: float
    quizzes_completed: int


def rank_entries(aggregates: Iterable[UserAggregate], top_n: int) -> List[LeaderboardEntry]:
    """
    Order aggregates and assign 1-based ranks.

    Ordering is by average percentage descending, then total score
    descending, then user id ascending. Ordering uses the unrounded mean;
    the reported average is rounded to two decimals.

    Args:
        aggregates: Per-user aggregates
        top_n: Maximum number of entries to return

    Returns:
        At most top_n entries, best first
    """
    ordered = sorted(
        aggregates,
        key=lambda a: (-a.average_percentage, -a.total_score, a.user_id),
    )
    return [
        LeaderboardEntry(
            rank=position,
            user_id=aggregate.user_id,
            username=aggregate.username,
            total_score=aggregate.total_score,
            average_percentage=round(aggregate.average_percentage, 2),
            quizzes_completed=aggregate.quizzes_completed,
        )
        for position, aggregate in enumerate(ordered[:max(top_n, 0)], start=1)
    ]


class LeaderboardAggregator:
    """Builds ranked leaderboards from the entity store."""

    def __init__(self, store):
        self.store = store

    def rank(
        self,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
        top_n: int = 10,
    ) -> List[LeaderboardEntry]:
        with self.store.read_session() as session:
            rows = self.store.leaderboard_rows(session, subject=subject, grade_level=grade_level)

        entries = rank_entries((UserAggregate(*row) for row in rows), top_n)
        logger.info(
            "Leaderboard subject=%s grade=%s: %d of %d user(s)",
            subject, grade_level, len(entries), len(rows),
        )
        return entries
