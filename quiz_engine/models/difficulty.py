"""
Difficulty adaptation: map a performance signal onto a difficulty tier and
rewrite question difficulty and points accordingly.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, TypeVar

from ..config import AdaptiveConfig
from .entities import Difficulty
from .views import PerformanceSignal

logger = logging.getLogger(__name__)

# Anything with mutable `difficulty` and `points` attributes
Q = TypeVar("Q")


class DifficultyAdapter:
    """
    Adjusts question difficulty to a user's recent performance.

    All questions in one call receive the same tier, and each question's
    points are set to the tier's weight (Easy=1, Medium=2, Hard=3).
    """

    def __init__(self, estimator, settings: Optional[AdaptiveConfig] = None):
        self.estimator = estimator
        self.settings = settings or AdaptiveConfig()

    def tier_for(self, average_percentage: float) -> Difficulty:
        """First match wins: >= hard threshold, >= medium threshold, else Easy."""
        if average_percentage >= self.settings.hard_threshold:
            return Difficulty.HARD
        if average_percentage >= self.settings.medium_threshold:
            return Difficulty.MEDIUM
        return Difficulty.EASY

    def apply_signal(self, questions: Sequence[Q], signal: PerformanceSignal) -> Sequence[Q]:
        """Set every question's difficulty and points from the signal, in place."""
        tier = self.tier_for(signal.average_percentage)
        for question in questions:
            question.difficulty = tier
            question.points = tier.value
        return questions

    def adapt(
        self,
        questions: Sequence[Q],
        user_id: int,
        subject: str,
        grade_level: str,
    ) -> Sequence[Q]:
        """
        Estimate performance once, then apply the resulting tier to all questions.

        Args:
            questions: Questions to adjust (mutated in place)
            user_id: User whose history drives the estimate
            subject: Subject to estimate within
            grade_level: Grade level to estimate within

        Returns:
            The same sequence, with the same question objects
        """
        signal = self.estimator.estimate(user_id, subject, grade_level)
        self.apply_signal(questions, signal)
        logger.info(
            "Adapted %d question(s) for user %s to %s (average %.2f)",
            len(questions), user_id, self.tier_for(signal.average_percentage).label,
            signal.average_percentage,
        )
        return questions
