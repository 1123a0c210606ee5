"""
Unit tests for EntityStore.

Tests transaction semantics, constraints, and the query helpers.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from quiz_engine.models.entities import QuizSubmission, SubmissionAnswer, User
from quiz_engine.utils.persistence import EntityStore


class TestTransactions:

    def test_commit_on_success(self, store):
        with store.transaction() as session:
            session.add(User(username="carol", email="carol@example.com"))

        with store.read_session() as session:
            assert session.query(User).filter_by(username="carol").count() == 1

    def test_rollback_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction() as session:
                session.add(User(username="dave", email="dave@example.com"))
                session.flush()
                raise RuntimeError("abort")

        with store.read_session() as session:
            assert session.query(User).count() == 0

    def test_unique_username(self, store, users):
        with pytest.raises(IntegrityError):
            store.create_user("alice", "other@example.com")

    def test_foreign_keys_enforced(self, store, users):
        with pytest.raises(IntegrityError):
            with store.transaction() as session:
                session.add(SubmissionAnswer(submission_id=999, question_id=999))

    def test_file_database(self, tmp_path):
        file_store = EntityStore(f"sqlite:///{tmp_path / 'quiz.db'}")
        file_store.create_schema()
        user = file_store.create_user("erin", "erin@example.com")

        with file_store.read_session() as session:
            assert session.get(User, user.id).username == "erin"
        file_store.dispose()


class TestQueries:

    def test_load_quiz_eager(self, store, quiz_factory):
        quiz_id = quiz_factory(points=(1, 2))

        with store.read_session() as session:
            quiz = store.load_quiz(session, quiz_id)

        # Still usable after the session is closed
        assert quiz.total_points == 3
        assert [len(q.answers) for q in quiz.questions] == [4, 4]

    def test_load_missing_quiz(self, store):
        with store.read_session() as session:
            assert store.load_quiz(session, 1) is None

    def test_recent_completed_submissions_order(self, store, users, quiz_factory, submission_factory):
        quiz_id = quiz_factory()
        alice = users["alice"].id
        older = submission_factory(alice, quiz_id, 10.0, minutes=1)
        newer = submission_factory(alice, quiz_id, 20.0, minutes=2)
        same_time = submission_factory(alice, quiz_id, 30.0, minutes=2)
        submission_factory(alice, quiz_id, 40.0, minutes=3, completed=False)

        with store.read_session() as session:
            rows = store.recent_completed_submissions(session, alice, "Math", "5", limit=5)
            assert [s.id for s in rows] == [same_time, newer, older]

    def test_history_page_counts(self, store, users, quiz_factory, submission_factory):
        quiz_id = quiz_factory()
        for i in range(3):
            submission_factory(users["bob"].id, quiz_id, 50.0, score=i, minutes=i)

        with store.read_session() as session:
            submissions, total = store.history_page(session, users["bob"].id, page_number=2, page_size=2)
            assert total == 3
            assert [s.score for s in submissions] == [0]

    def test_leaderboard_rows(self, store, users, quiz_factory, submission_factory):
        quiz_id = quiz_factory()
        submission_factory(users["alice"].id, quiz_id, 40.0, score=4)
        submission_factory(users["alice"].id, quiz_id, 60.0, score=6)

        with store.read_session() as session:
            rows = store.leaderboard_rows(session)

        assert rows == [(users["alice"].id, "alice", 10, 50.0, 2)]

    def test_get_submission_missing(self, store):
        with store.read_session() as session:
            assert store.get_submission(session, 1) is None
            assert session.query(QuizSubmission).count() == 0
