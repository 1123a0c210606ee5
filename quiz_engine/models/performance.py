"""
Performance estimation over a learner's recent completed submissions.

The estimate is a rolling mean of submission percentages for one
(subject, grade level) pair, with a neutral default when there is no history.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import AdaptiveConfig
from .views import PerformanceSignal

logger = logging.getLogger(__name__)


class PerformanceEstimator:
    """
    Estimates a user's recent performance in a subject and grade level.

    Usage:
        estimator = PerformanceEstimator(store, config.adaptive)
        signal = estimator.estimate(user_id=1, subject="Math", grade_level="5")
        print(signal.average_percentage, signal.completed_count)
    """

    def __init__(self, store, settings: Optional[AdaptiveConfig] = None):
        """
        Initialize the estimator.

        Args:
            store: EntityStore to read completed submissions from
            settings: Window size and default percentage
        """
        self.store = store
        self.settings = settings or AdaptiveConfig()

    def estimate(self, user_id: int, subject: str, grade_level: str) -> PerformanceSignal:
        """
        Average percentage over the newest completed submissions.

        Only submissions whose quiz matches both subject and grade level count.
        At most settings.window_size submissions are considered, newest first.

        Returns:
            PerformanceSignal; (default_percentage, 0) when there is no history
        """
        with self.store.read_session() as session:
            submissions = self.store.recent_completed_submissions(
                session,
                user_id=user_id,
                subject=subject,
                grade_level=grade_level,
                limit=self.settings.window_size,
            )
            percentages = [s.percentage for s in submissions]

        if not percentages:
            return PerformanceSignal(
                average_percentage=self.settings.default_percentage,
                completed_count=0,
            )

        signal = PerformanceSignal(
            average_percentage=sum(percentages) / len(percentages),
            completed_count=len(percentages),
        )
        logger.debug(
            "Performance for user %s in %s/%s: %.2f over %d submission(s)",
            user_id, subject, grade_level, signal.average_percentage, signal.completed_count,
        )
        return signal
