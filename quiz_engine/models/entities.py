"""
Persistent entities: users, quizzes, questions, answers, and graded submissions.

A QuizSubmission and its SubmissionAnswers are written once by the grading
pipeline and never modified afterwards. Questions are only mutated by the
difficulty adapter (difficulty and points) when a quiz is retried.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(enum.Enum):
    """Difficulty tier; the value is the tier's point weight."""

    EASY = 1
    MEDIUM = 2
    HARD = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: str, default: Optional[Difficulty] = None) -> Difficulty:
        """Case-insensitive lookup by name ("easy", "Medium", "HARD")."""
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            if default is not None:
                return default
            raise ValueError(f"Unknown difficulty: {value!r}")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False)
    # Opaque credential material, stored as given
    password_hash = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    submissions = relationship("QuizSubmission", back_populates="user")

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=False, default="")
    subject = Column(String(100), nullable=False, index=True)
    grade_level = Column(String(50), nullable=False, index=True)
    duration = Column(Integer, nullable=False, default=0)  # minutes
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.id",
    )
    submissions = relationship("QuizSubmission", back_populates="quiz")

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    def __repr__(self) -> str:
        return f"<Quiz id={self.id} subject={self.subject!r} grade={self.grade_level!r}>"


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(1000), nullable=False)
    hint = Column(String(500))
    difficulty = Column(Enum(Difficulty), nullable=False, default=Difficulty.MEDIUM)
    points = Column(Integer, nullable=False, default=1)

    quiz = relationship("Quiz", back_populates="questions")
    answers = relationship(
        "Answer",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Answer.id",
    )

    def __repr__(self) -> str:
        return f"<Question id={self.id} quiz_id={self.quiz_id} difficulty={self.difficulty}>"


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(500), nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)

    question = relationship("Question", back_populates="answers")


class QuizSubmission(Base):
    __tablename__ = "quiz_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), index=True)
    score = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0.0)
    improvement_suggestions = Column(Text)  # newline-joined

    user = relationship("User", back_populates="submissions")
    quiz = relationship("Quiz", back_populates="submissions")
    answers = relationship(
        "SubmissionAnswer",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionAnswer.id",
    )

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def suggestions(self) -> list[str]:
        if not self.improvement_suggestions:
            return []
        return self.improvement_suggestions.split("\n")

    def __repr__(self) -> str:
        return (
            f"<QuizSubmission id={self.id} user_id={self.user_id} quiz_id={self.quiz_id} "
            f"score={self.score}/{self.total_points}>"
        )


class SubmissionAnswer(Base):
    __tablename__ = "submission_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        Integer, ForeignKey("quiz_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="RESTRICT"), nullable=False)
    selected_answer_id = Column(Integer, ForeignKey("answers.id", ondelete="RESTRICT"))
    is_correct = Column(Boolean, nullable=False, default=False)
    points_earned = Column(Integer, nullable=False, default=0)

    submission = relationship("QuizSubmission", back_populates="answers")
    question = relationship("Question")
    selected_answer = relationship("Answer")
