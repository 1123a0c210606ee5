"""
Shared pytest fixtures and configuration for quiz engine tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from quiz_engine.agents.content_generator import ContentGenerator
from quiz_engine.models.entities import Answer, Difficulty, Question, Quiz, QuizSubmission
from quiz_engine.utils.persistence import EntityStore


BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
def store():
    """
    Fixture providing an empty in-memory entity store.

    Returns:
        EntityStore: Store with the schema created
    """
    entity_store = EntityStore("sqlite://", echo=False)
    entity_store.create_schema()
    yield entity_store
    entity_store.dispose()


@pytest.fixture
def users(store):
    """Two users: alice and bob."""
    alice = store.create_user("alice", "alice@example.com", "hash-a")
    bob = store.create_user("bob", "bob@example.com", "hash-b")
    return {"alice": alice, "bob": bob}


@pytest.fixture
def quiz_factory(store):
    """
    Fixture providing a function that stores a quiz.

    Each question gets four answers; the first one is correct.

    Returns:
        Callable[..., int]: make_quiz(subject, grade_level, points) -> quiz id
    """

    def make_quiz(subject="Math", grade_level="5", points=(1, 1, 1)):
        with store.transaction() as session:
            quiz = Quiz(
                title=f"{subject} Quiz - Grade {grade_level}",
                description="Seeded quiz",
                subject=subject,
                grade_level=grade_level,
                duration=len(points) * 2,
                questions=[
                    Question(
                        text=f"{subject} question {i}",
                        difficulty=Difficulty.MEDIUM,
                        points=p,
                        answers=[
                            Answer(text=f"Right {i}", is_correct=True),
                            Answer(text=f"Wrong {i}a", is_correct=False),
                            Answer(text=f"Wrong {i}b", is_correct=False),
                            Answer(text=f"Wrong {i}c", is_correct=False),
                        ],
                    )
                    for i, p in enumerate(points, start=1)
                ],
            )
            session.add(quiz)
            session.flush()
            return quiz.id

    return make_quiz


@pytest.fixture
def submission_factory(store):
    """
    Fixture providing a function that stores a finished submission directly.

    Returns:
        Callable[..., int]: add(user_id, quiz_id, percentage, score=0, minutes=0,
        completed=True) -> submission id; `minutes` offsets completed_at from BASE_TIME
    """

    def add_submission(user_id, quiz_id, percentage, score=0, minutes=0, completed=True):
        at = BASE_TIME + timedelta(minutes=minutes)
        with store.transaction() as session:
            submission = QuizSubmission(
                user_id=user_id,
                quiz_id=quiz_id,
                started_at=at,
                completed_at=at if completed else None,
                score=score,
                total_points=100,
                percentage=percentage,
            )
            session.add(submission)
            session.flush()
            return submission.id

    return add_submission


@pytest.fixture
def offline_llm():
    """A chat model stand-in whose every call fails."""
    llm = MagicMock()
    llm.invoke.side_effect = ConnectionError("LLM unreachable")
    return llm


@pytest.fixture
def generator(offline_llm):
    """ContentGenerator that always serves fallback content."""
    return ContentGenerator(llm=offline_llm)


@pytest.fixture
def llm_reply():
    """
    Fixture providing a function that builds a chat model returning fixed text.

    Returns:
        Callable[[str], MagicMock]
    """

    def make_llm(content, usage=None):
        llm = MagicMock()
        response = MagicMock()
        response.content = content
        response.usage_metadata = usage
        llm.invoke.return_value = response
        return llm

    return make_llm


@pytest.fixture(autouse=True)
def reset_token_tracker():
    """
    Auto-fixture to reset token tracker before each test.

    This ensures tests don't interfere with each other.
    """
    from quiz_engine.config import token_tracker

    token_tracker.reset()
    yield
    token_tracker.reset()


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
