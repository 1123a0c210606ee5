"""
Read-side projections and result records.

Two projection families are built from the ORM entities:

- Client-facing (QuizView, QuestionView, AnswerView): what a quiz-taker sees.
  AnswerView carries no correctness information at all.
- Grading-internal (GradingQuiz, GradingQuestion, GradingAnswer): correctness
  visible, used only by the grading pipeline.

The remaining dataclasses are computed results handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .entities import Difficulty, Question, Quiz, QuizSubmission


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps come back naive; they are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ==================== Client-facing projection ====================

@dataclass(frozen=True)
class AnswerView:
    id: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True)
class QuestionView:
    id: int
    text: str
    difficulty: Difficulty
    points: int
    hint: Optional[str] = None
    answers: List[AnswerView] = field(default_factory=list)

    @classmethod
    def from_entity(cls, question: Question) -> "QuestionView":
        return cls(
            id=question.id,
            text=question.text,
            difficulty=question.difficulty,
            points=question.points,
            hint=question.hint,
            answers=[AnswerView(id=a.id, text=a.text) for a in question.answers],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "hint": self.hint,
            "difficulty": self.difficulty.label,
            "points": self.points,
            "answers": [a.to_dict() for a in self.answers],
        }


@dataclass(frozen=True)
class QuizView:
    """A quiz as served to the quiz-taker."""

    id: int
    title: str
    description: str
    subject: str
    grade_level: str
    duration: int
    questions: List[QuestionView] = field(default_factory=list)

    @classmethod
    def from_entity(cls, quiz: Quiz) -> "QuizView":
        return cls(
            id=quiz.id,
            title=quiz.title,
            description=quiz.description,
            subject=quiz.subject,
            grade_level=quiz.grade_level,
            duration=quiz.duration,
            questions=[QuestionView.from_entity(q) for q in quiz.questions],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "grade_level": self.grade_level,
            "duration": self.duration,
            "questions": [q.to_dict() for q in self.questions],
        }


# ==================== Grading-internal projection ====================

@dataclass(frozen=True)
class GradingAnswer:
    id: int
    text: str
    is_correct: bool


@dataclass(frozen=True)
class GradingQuestion:
    id: int
    text: str
    points: int
    answers: List[GradingAnswer] = field(default_factory=list)

    def find_answer(self, answer_id: Optional[int]) -> Optional[GradingAnswer]:
        """Resolve an answer id within this question; foreign ids resolve to None."""
        if answer_id is None:
            return None
        return next((a for a in self.answers if a.id == answer_id), None)

    @property
    def correct_answer(self) -> Optional[GradingAnswer]:
        return next((a for a in self.answers if a.is_correct), None)


@dataclass(frozen=True)
class GradingQuiz:
    id: int
    subject: str
    grade_level: str
    questions: List[GradingQuestion] = field(default_factory=list)

    @classmethod
    def from_entity(cls, quiz: Quiz) -> "GradingQuiz":
        return cls(
            id=quiz.id,
            subject=quiz.subject,
            grade_level=quiz.grade_level,
            questions=[
                GradingQuestion(
                    id=q.id,
                    text=q.text,
                    points=q.points,
                    answers=[
                        GradingAnswer(id=a.id, text=a.text, is_correct=a.is_correct)
                        for a in q.answers
                    ],
                )
                for q in quiz.questions
            ],
        )

    def find_question(self, question_id: int) -> Optional[GradingQuestion]:
        return next((q for q in self.questions if q.id == question_id), None)

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)


# ==================== Results ====================

@dataclass
class QuestionResult:
    """Per-question outcome of a graded submission."""
    question_id: int
    question_text: str
    is_correct: bool
    points_earned: int
    correct_answer: Optional[str] = None
    your_answer: Optional[str] = None
    selected_answer_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "question_text": self.question_text,
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
            "correct_answer": self.correct_answer,
            "your_answer": self.your_answer,
        }


@dataclass
class GradingResult:
    """
    Result of grading one quiz submission.

    Attributes:
        submission_id: Identity of the persisted submission
        score: Sum of points earned
        total_points: Sum of points over all quiz questions
        percentage: score / total_points * 100, 0 when total_points is 0
        completed_at: Completion timestamp (UTC)
        improvement_suggestions: Study suggestions from the content generator
        question_results: Per-question breakdown, in submission order
    """
    submission_id: int
    score: int
    total_points: int
    percentage: float
    completed_at: datetime
    improvement_suggestions: List[str] = field(default_factory=list)
    question_results: List[QuestionResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "score": self.score,
            "total_points": self.total_points,
            "percentage": self.percentage,
            "completed_at": _isoformat(self.completed_at),
            "improvement_suggestions": list(self.improvement_suggestions),
            "question_results": [r.to_dict() for r in self.question_results],
        }


@dataclass(frozen=True)
class PerformanceSignal:
    """Rolling performance over a user's recent completed submissions."""
    average_percentage: float
    completed_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_percentage": self.average_percentage,
            "completed_count": self.completed_count,
        }


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    username: str
    total_score: int
    average_percentage: float
    quizzes_completed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "username": self.username,
            "total_score": self.total_score,
            "average_percentage": self.average_percentage,
            "quizzes_completed": self.quizzes_completed,
        }


@dataclass
class LeaderboardResponse:
    entries: List[LeaderboardEntry] = field(default_factory=list)
    subject: Optional[str] = None
    grade_level: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "subject": self.subject,
            "grade_level": self.grade_level,
        }


@dataclass
class HistoryItem:
    submission_id: int
    quiz_id: int
    quiz_title: str
    subject: str
    grade_level: str
    score: int
    total_points: int
    percentage: float
    completed_at: datetime
    can_retry: bool = True

    @classmethod
    def from_entity(cls, submission: QuizSubmission) -> "HistoryItem":
        return cls(
            submission_id=submission.id,
            quiz_id=submission.quiz_id,
            quiz_title=submission.quiz.title,
            subject=submission.quiz.subject,
            grade_level=submission.quiz.grade_level,
            score=submission.score,
            total_points=submission.total_points,
            percentage=submission.percentage,
            completed_at=_as_utc(submission.completed_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "quiz_id": self.quiz_id,
            "quiz_title": self.quiz_title,
            "subject": self.subject,
            "grade_level": self.grade_level,
            "score": self.score,
            "total_points": self.total_points,
            "percentage": self.percentage,
            "completed_at": _isoformat(self.completed_at),
            "can_retry": self.can_retry,
        }


@dataclass
class HistoryPage:
    items: List[HistoryItem]
    total_count: int
    page_number: int
    page_size: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "total_count": self.total_count,
            "page_number": self.page_number,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


@dataclass
class SubmissionDetail:
    """A stored submission with its per-question answers."""
    submission_id: int
    user_id: int
    username: str
    quiz_id: int
    quiz_title: str
    score: int
    total_points: int
    percentage: float
    started_at: datetime
    completed_at: Optional[datetime]
    improvement_suggestions: List[str] = field(default_factory=list)
    answers: List[QuestionResult] = field(default_factory=list)

    @classmethod
    def from_entity(cls, submission: QuizSubmission) -> "SubmissionDetail":
        answers = []
        for row in submission.answers:
            correct = next((a for a in row.question.answers if a.is_correct), None)
            answers.append(QuestionResult(
                question_id=row.question_id,
                question_text=row.question.text,
                is_correct=row.is_correct,
                points_earned=row.points_earned,
                correct_answer=correct.text if correct else None,
                your_answer=row.selected_answer.text if row.selected_answer else None,
                selected_answer_id=row.selected_answer_id,
            ))

        return cls(
            submission_id=submission.id,
            user_id=submission.user_id,
            username=submission.user.username,
            quiz_id=submission.quiz_id,
            quiz_title=submission.quiz.title,
            score=submission.score,
            total_points=submission.total_points,
            percentage=submission.percentage,
            started_at=_as_utc(submission.started_at),
            completed_at=_as_utc(submission.completed_at),
            improvement_suggestions=submission.suggestions,
            answers=answers,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "user_id": self.user_id,
            "username": self.username,
            "quiz_id": self.quiz_id,
            "quiz_title": self.quiz_title,
            "score": self.score,
            "total_points": self.total_points,
            "percentage": self.percentage,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "improvement_suggestions": list(self.improvement_suggestions),
            "answers": [a.to_dict() for a in self.answers],
        }
