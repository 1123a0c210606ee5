"""
Data models for the quiz engine.

This module contains:
- Persistent entities: User, Quiz, Question, Answer, QuizSubmission, SubmissionAnswer
- Client-facing and grading-internal projections, plus result records
- Engines: PerformanceEstimator, DifficultyAdapter, LeaderboardAggregator
"""

from .difficulty import DifficultyAdapter
from .entities import (
    Answer,
    Base,
    Difficulty,
    Question,
    Quiz,
    QuizSubmission,
    SubmissionAnswer,
    User,
)
from .leaderboard import LeaderboardAggregator, UserAggregate, rank_entries
from .performance import PerformanceEstimator
from .views import (
    AnswerView,
    GradingAnswer,
    GradingQuestion,
    GradingQuiz,
    GradingResult,
    HistoryItem,
    HistoryPage,
    LeaderboardEntry,
    LeaderboardResponse,
    PerformanceSignal,
    QuestionResult,
    QuestionView,
    QuizView,
    SubmissionDetail,
)

__all__ = [
    "Answer",
    "AnswerView",
    "Base",
    "Difficulty",
    "DifficultyAdapter",
    "GradingAnswer",
    "GradingQuestion",
    "GradingQuiz",
    "GradingResult",
    "HistoryItem",
    "HistoryPage",
    "LeaderboardAggregator",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "PerformanceEstimator",
    "PerformanceSignal",
    "Question",
    "QuestionResult",
    "QuestionView",
    "Quiz",
    "QuizSubmission",
    "QuizView",
    "SubmissionAnswer",
    "SubmissionDetail",
    "User",
    "UserAggregate",
    "rank_entries",
]
