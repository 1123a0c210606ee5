"""
Quiz Service - the public entry point of the quiz engine.

Wires the entity store, content generator, performance estimator,
difficulty adapter, grading pipeline, and leaderboard aggregator together:
1. Quiz generation (difficulty worded from recent performance)
2. Submission grading with atomic persistence
3. Hints (stored once generated)
4. Paginated quiz history
5. Retries with adapted difficulty
6. Leaderboards

Every request payload is schema-validated here, before any engine runs.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from .agents.content_generator import FALLBACK_HINT, ContentGenerator, GeneratedQuiz
from .config import config
from .errors import NotFoundError, ValidationError
from .grading import AnswerInput, AnswerSubmission, GradingPipeline
from .models.difficulty import DifficultyAdapter
from .models.entities import Answer, Question, Quiz
from .models.leaderboard import LeaderboardAggregator
from .models.performance import PerformanceEstimator
from .models.views import (
    GradingResult,
    HistoryItem,
    HistoryPage,
    LeaderboardResponse,
    QuizView,
    SubmissionDetail,
)
from .utils.persistence import EntityStore, get_store
from .utils.validation import validate_request

logger = logging.getLogger(__name__)

MAX_HINT_LENGTH = 500


def _answer_payload(answer: Union[AnswerInput, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(answer, dict):
        return answer
    if isinstance(answer, AnswerSubmission):
        return asdict(answer)
    question_id, selected_answer_id = answer
    return {"question_id": question_id, "selected_answer_id": selected_answer_id}


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC, the form timestamps are stored in; naive input is taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class QuizService:
    """
    Facade over the quiz engine.

    Usage:
        service = QuizService()
        quiz = service.generate_quiz(user_id=1, subject="Math", grade_level="5", count=5)
        result = service.submit_quiz(user_id=1, quiz_id=quiz.id, answers=[
            {"question_id": quiz.questions[0].id, "selected_answer_id": quiz.questions[0].answers[0].id},
        ])
        print(result.percentage, result.improvement_suggestions)
    """

    def __init__(
        self,
        store: Optional[EntityStore] = None,
        generator: Optional[ContentGenerator] = None,
    ):
        """
        Initialize the service.

        Args:
            store: Entity store (default: global store on the configured database)
            generator: Content generator (default: LLM-backed ContentGenerator)
        """
        self.store = store or get_store()
        self.generator = generator or ContentGenerator()

        self.estimator = PerformanceEstimator(self.store, config.adaptive)
        self.adapter = DifficultyAdapter(self.estimator, config.adaptive)
        self.pipeline = GradingPipeline(self.store, self.generator)
        self.leaderboard = LeaderboardAggregator(self.store)

    # ==================== Quiz Generation ====================

    def generate_quiz(
        self,
        user_id: int,
        subject: str,
        grade_level: str,
        count: int,
        topics: Optional[str] = None,
    ) -> QuizView:
        """
        Generate and store a quiz pitched at the user's recent performance.

        Returns:
            Client-facing view of the stored quiz (no correctness information)
        """
        validate_request("generate_quiz", {
            "subject": subject,
            "grade_level": grade_level,
            "count": count,
            "topics": topics,
        })
        if count > config.query.max_questions_per_quiz:
            raise ValidationError([
                f"count must be <= {config.query.max_questions_per_quiz}, got {count}"
            ])

        signal = self.estimator.estimate(user_id, subject, grade_level)
        generated = self.generator.generate_quiz(
            subject, grade_level, count, topics=topics, performance=signal
        )

        with self.store.transaction() as session:
            quiz = self._build_quiz(generated)
            session.add(quiz)
            session.flush()
            view = QuizView.from_entity(quiz)

        logger.info(
            "Stored quiz %s (%s/%s, %d question(s), fallback=%s) for user %s",
            view.id, subject, grade_level, len(view.questions), generated.is_fallback, user_id,
        )
        return view

    @staticmethod
    def _build_quiz(generated: GeneratedQuiz) -> Quiz:
        return Quiz(
            title=generated.title,
            description=generated.description,
            subject=generated.subject,
            grade_level=generated.grade_level,
            duration=generated.duration,
            questions=[
                Question(
                    text=q.text,
                    hint=q.hint,
                    difficulty=q.difficulty,
                    points=q.points,
                    answers=[Answer(text=a.text, is_correct=a.is_correct) for a in q.answers],
                )
                for q in generated.questions
            ],
        )

    # ==================== Grading ====================

    def submit_quiz(
        self,
        user_id: int,
        quiz_id: int,
        answers: Iterable[Union[AnswerInput, Dict[str, Any]]],
    ) -> GradingResult:
        """
        Grade a submission.

        Args:
            user_id: Submitting user
            quiz_id: Quiz being answered
            answers: {"question_id", "selected_answer_id"} dicts,
                AnswerSubmission records, or (question_id, answer_id) pairs

        Raises:
            ValidationError: Malformed payload
            NotFoundError: Unknown quiz
            InternalError: Grading failed and was rolled back
        """
        payload = {"quiz_id": quiz_id, "answers": [_answer_payload(a) for a in answers]}
        validate_request("submit_quiz", payload)

        return self.pipeline.grade(
            quiz_id,
            user_id,
            [
                AnswerSubmission(a["question_id"], a.get("selected_answer_id"))
                for a in payload["answers"]
            ],
        )

    # ==================== Hints ====================

    def get_hint(self, question_id: int) -> str:
        """
        Hint for a question: the stored one, or a newly generated one.

        A generated hint is stored on the question; the fixed fallback hint is not.
        """
        with self.store.read_session() as session:
            question = self.store.get_question(session, question_id)
            if question is None:
                raise NotFoundError("Question", question_id)
            stored_hint, text = question.hint, question.text

        if stored_hint:
            return stored_hint

        hint = self.generator.generate_hint(text)[:MAX_HINT_LENGTH]
        if hint == FALLBACK_HINT:
            return hint

        with self.store.transaction() as session:
            question = self.store.get_question(session, question_id)
            if question is None:
                raise NotFoundError("Question", question_id)
            question.hint = hint

        logger.info("Stored generated hint for question %s", question_id)
        return hint

    # ==================== History ====================

    def get_history(
        self,
        user_id: int,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        page_number: int = 1,
        page_size: Optional[int] = None,
    ) -> HistoryPage:
        """
        One page of the user's completed submissions, newest first.

        Raises:
            ValidationError: Bad pagination or inverted score/date ranges
        """
        page_size = page_size if page_size is not None else config.query.default_page_size
        from_date, to_date = _as_utc_naive(from_date), _as_utc_naive(to_date)
        validate_request("history", {
            "subject": subject,
            "grade_level": grade_level,
            "min_score": min_score,
            "max_score": max_score,
            "from_date": _isoformat(from_date),
            "to_date": _isoformat(to_date),
            "page_number": page_number,
            "page_size": page_size,
        })

        errors: List[str] = []
        if min_score is not None and max_score is not None and min_score > max_score:
            errors.append(f"min_score ({min_score}) must be <= max_score ({max_score})")
        if from_date is not None and to_date is not None and from_date > to_date:
            errors.append("from_date must not be after to_date")
        if page_size > config.query.max_page_size:
            errors.append(f"page_size must be <= {config.query.max_page_size}, got {page_size}")
        if errors:
            raise ValidationError(errors)

        with self.store.read_session() as session:
            submissions, total_count = self.store.history_page(
                session,
                user_id,
                subject=subject,
                grade_level=grade_level,
                min_score=min_score,
                max_score=max_score,
                from_date=from_date,
                to_date=to_date,
                page_number=page_number,
                page_size=page_size,
            )
            items = [HistoryItem.from_entity(s) for s in submissions]

        return HistoryPage(
            items=items,
            total_count=total_count,
            page_number=page_number,
            page_size=page_size,
            total_pages=math.ceil(total_count / page_size),
        )

    # ==================== Retry ====================

    def retry_quiz(self, user_id: int, quiz_id: int) -> QuizView:
        """
        Re-serve a quiz with every question adapted to the user's performance.

        The adapted difficulty and points are stored on the questions;
        earlier submissions keep the totals they were graded with.

        Raises:
            NotFoundError: Unknown quiz
        """
        with self.store.read_session() as session:
            quiz = self.store.load_quiz(session, quiz_id)
            if quiz is None:
                raise NotFoundError("Quiz", quiz_id)
            questions = list(quiz.questions)
            subject, grade_level = quiz.subject, quiz.grade_level

        self.adapter.adapt(questions, user_id, subject, grade_level)

        with self.store.transaction() as session:
            for question in questions:
                session.merge(question)
            session.flush()
            view = QuizView.from_entity(self.store.load_quiz(session, quiz_id))

        logger.info("Quiz %s prepared for retry by user %s", quiz_id, user_id)
        return view

    # ==================== Leaderboard ====================

    def get_leaderboard(
        self,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
        top: Optional[int] = None,
    ) -> LeaderboardResponse:
        top = top if top is not None else config.query.default_leaderboard_size
        validate_request("leaderboard", {"subject": subject, "grade_level": grade_level, "top": top})
        if top > config.query.max_leaderboard_size:
            raise ValidationError([f"top must be <= {config.query.max_leaderboard_size}, got {top}"])

        entries = self.leaderboard.rank(subject=subject, grade_level=grade_level, top_n=top)
        return LeaderboardResponse(entries=entries, subject=subject, grade_level=grade_level)

    # ==================== Lookups ====================

    def get_quiz(self, quiz_id: int) -> QuizView:
        with self.store.read_session() as session:
            quiz = self.store.load_quiz(session, quiz_id)
            if quiz is None:
                raise NotFoundError("Quiz", quiz_id)
            return QuizView.from_entity(quiz)

    def get_submission(self, submission_id: int) -> SubmissionDetail:
        with self.store.read_session() as session:
            submission = self.store.get_submission(session, submission_id)
            if submission is None:
                raise NotFoundError("Submission", submission_id)
            return SubmissionDetail.from_entity(submission)
