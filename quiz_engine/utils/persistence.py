"""
Entity store: transactional persistence for quizzes and graded submissions.

Provides a SQLAlchemy engine/session wrapper with:
- An all-or-nothing transaction() scope (commit on success, rollback on error)
- Read-only sessions that only observe committed data
- The filtered, sorted, paginated queries used by the engines
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from sqlalchemy import create_engine, event, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Query, Session, joinedload, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import config
from ..models.entities import (
    Base,
    Question,
    Quiz,
    QuizSubmission,
    SubmissionAnswer,
    User,
)

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class EntityStore:
    """
    Handles persistence of quiz entities and submissions.

    Usage:
        store = EntityStore("sqlite:///data/quiz_engine.db")
        store.create_schema()

        with store.transaction() as session:
            session.add(quiz)

        with store.read_session() as session:
            quiz = store.load_quiz(session, quiz_id)
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        """
        Initialize the store.

        Args:
            url: SQLAlchemy database URL (default: config.database_url())
            echo: Log emitted SQL (default: config.database.echo)
        """
        self.url = url or config.database_url()
        echo = config.database.echo if echo is None else echo

        engine_kwargs = {"echo": echo}
        if self.url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.url in {"sqlite://", "sqlite:///:memory:"}:
                # One shared connection so every session sees the same database
                engine_kwargs["poolclass"] = StaticPool

        self.engine: Engine = create_engine(self.url, **engine_kwargs)
        if self.url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        """Create all tables that don't exist yet."""
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        All-or-nothing unit of work.

        Every write made through the yielded session becomes visible to other
        readers at commit, together. Any exception rolls the whole unit back
        and is re-raised unchanged.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            logger.debug("Transaction rolled back")
            raise
        finally:
            session.close()

    @contextmanager
    def read_session(self) -> Iterator[Session]:
        """
        Session for read-only queries; never commits.

        Loaded objects stay usable (detached, not expired) after the block.
        Do not open one inside a transaction() on the same store.
        """
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    # ==================== Users ====================

    def create_user(self, username: str, email: str, password_hash: str = "") -> User:
        """Create a user record (credentials are stored as given, never verified)."""
        with self.transaction() as session:
            user = User(username=username, email=email, password_hash=password_hash)
            session.add(user)
            session.flush()
        logger.info("Created user %s (id=%s)", username, user.id)
        return user

    # ==================== Quizzes ====================

    def load_quiz(self, session: Session, quiz_id: int) -> Optional[Quiz]:
        """Load a quiz with its questions and their answers eagerly."""
        return (
            session.query(Quiz)
            .options(selectinload(Quiz.questions).selectinload(Question.answers))
            .filter(Quiz.id == quiz_id)
            .one_or_none()
        )

    def get_question(self, session: Session, question_id: int) -> Optional[Question]:
        return session.get(Question, question_id)

    # ==================== Submissions ====================

    def get_submission(self, session: Session, submission_id: int) -> Optional[QuizSubmission]:
        """Load a submission with its quiz, user, and answer rows."""
        return (
            session.query(QuizSubmission)
            .options(
                joinedload(QuizSubmission.quiz),
                joinedload(QuizSubmission.user),
                selectinload(QuizSubmission.answers)
                .joinedload(SubmissionAnswer.question)
                .selectinload(Question.answers),
                selectinload(QuizSubmission.answers).joinedload(SubmissionAnswer.selected_answer),
            )
            .filter(QuizSubmission.id == submission_id)
            .one_or_none()
        )

    def completed_submission_query(
        self,
        session: Session,
        user_id: Optional[int] = None,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
    ) -> Query:
        """Completed submissions joined with their quiz, optionally filtered."""
        query = (
            session.query(QuizSubmission)
            .join(Quiz, QuizSubmission.quiz_id == Quiz.id)
            .filter(QuizSubmission.completed_at.isnot(None))
        )
        if user_id is not None:
            query = query.filter(QuizSubmission.user_id == user_id)
        if subject:
            query = query.filter(Quiz.subject == subject)
        if grade_level:
            query = query.filter(Quiz.grade_level == grade_level)
        return query

    def recent_completed_submissions(
        self,
        session: Session,
        user_id: int,
        subject: str,
        grade_level: str,
        limit: int,
    ) -> List[QuizSubmission]:
        """The user's newest completed submissions for a subject and grade level."""
        return (
            self.completed_submission_query(session, user_id, subject, grade_level)
            .order_by(QuizSubmission.completed_at.desc(), QuizSubmission.id.desc())
            .limit(limit)
            .all()
        )

    def history_page(
        self,
        session: Session,
        user_id: int,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        page_number: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[QuizSubmission], int]:
        """
        One page of a user's completed submissions, newest first.

        Returns:
            Tuple of (submissions on the page, total matching count)
        """
        query = self.completed_submission_query(session, user_id, subject, grade_level)

        if min_score is not None:
            query = query.filter(QuizSubmission.score >= min_score)
        if max_score is not None:
            query = query.filter(QuizSubmission.score <= max_score)
        if from_date is not None:
            query = query.filter(QuizSubmission.completed_at >= from_date)
        if to_date is not None:
            query = query.filter(QuizSubmission.completed_at <= to_date)

        total_count = query.count()
        submissions = (
            query.options(joinedload(QuizSubmission.quiz))
            .order_by(QuizSubmission.completed_at.desc(), QuizSubmission.id.desc())
            .offset((page_number - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return submissions, total_count

    def leaderboard_rows(
        self,
        session: Session,
        subject: Optional[str] = None,
        grade_level: Optional[str] = None,
    ) -> List[Tuple[int, str, int, float, int]]:
        """
        Per-user aggregates over completed submissions.

        Returns:
            List of (user_id, username, total_score, average_percentage, quizzes_completed)
        """
        query = (
            self.completed_submission_query(session, subject=subject, grade_level=grade_level)
            .join(User, QuizSubmission.user_id == User.id)
            .with_entities(
                User.id,
                User.username,
                func.sum(QuizSubmission.score),
                func.avg(QuizSubmission.percentage),
                func.count(QuizSubmission.id),
            )
            .group_by(User.id, User.username)
        )
        return [
            (user_id, username, int(total or 0), float(average or 0.0), int(count))
            for user_id, username, total, average, count in query.all()
        ]


# Global store instance
_store: Optional[EntityStore] = None


def get_store() -> EntityStore:
    """Get or create the global store bound to the configured database."""
    global _store
    if _store is None:
        config.prepare_fs()
        _store = EntityStore()
        _store.create_schema()
    return _store
