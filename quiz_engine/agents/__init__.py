"""
AI agents for the quiz engine.

This module contains LangChain-based content generation:
- Quiz generation with adaptive difficulty wording
- Hints that guide without revealing the answer
- Study suggestions for graded submissions

Note: grading itself is deterministic and lives in quiz_engine.grading
"""

from .content_generator import (
    ContentGenerator,
    GeneratedAnswer,
    GeneratedQuestion,
    GeneratedQuiz,
    SubmissionSummary,
)

__all__ = [
    "ContentGenerator",
    "GeneratedAnswer",
    "GeneratedQuestion",
    "GeneratedQuiz",
    "SubmissionSummary",
]
