"""
Quiz grading and adaptive-performance engine.

Entry point: QuizService (quiz generation, grading, hints, history,
retries with adapted difficulty, leaderboards).
"""

from .service import QuizService

__version__ = "0.1"

__all__ = ["QuizService"]
