"""
Unit tests for the grading pipeline.

Tests scoring rules, atomic persistence, and rollback on failure.
"""

from unittest.mock import MagicMock

import pytest

from quiz_engine.agents.content_generator import ALL_CORRECT_SUGGESTION, FALLBACK_SUGGESTIONS
from quiz_engine.errors import InternalError, NotFoundError
from quiz_engine.grading import AnswerSubmission, GradingPipeline, percentage_of, score_answers
from quiz_engine.models.entities import QuizSubmission, SubmissionAnswer
from quiz_engine.models.views import GradingAnswer, GradingQuestion, GradingQuiz


def load(store, quiz_id):
    with store.read_session() as session:
        return store.load_quiz(session, quiz_id)


def count_rows(store, model):
    with store.read_session() as session:
        return session.query(model).count()


def right(question):
    return next(a.id for a in question.answers if a.is_correct)


def wrong(question):
    return next(a.id for a in question.answers if not a.is_correct)


class TestScoreAnswers:
    """Pure scoring over the grading projection."""

    @pytest.fixture
    def quiz(self):
        return GradingQuiz(
            id=1,
            subject="Math",
            grade_level="5",
            questions=[
                GradingQuestion(id=10, text="2+2?", points=2, answers=[
                    GradingAnswer(id=100, text="4", is_correct=True),
                    GradingAnswer(id=101, text="5", is_correct=False),
                ]),
                GradingQuestion(id=11, text="3+3?", points=3, answers=[
                    GradingAnswer(id=110, text="6", is_correct=True),
                    GradingAnswer(id=111, text="7", is_correct=False),
                ]),
            ],
        )

    def test_correct_and_incorrect(self, quiz):
        results, score = score_answers(quiz, [(10, 100), (11, 111)])

        assert score == 2
        assert [r.is_correct for r in results] == [True, False]
        assert results[1].correct_answer == "6"
        assert results[1].your_answer == "7"

    def test_accepts_answer_submission_records(self, quiz):
        results, score = score_answers(quiz, [AnswerSubmission(11, 110)])
        assert score == 3
        assert results[0].points_earned == 3

    def test_unknown_question_is_skipped(self, quiz):
        results, score = score_answers(quiz, [(999, 100), (10, 100)])
        assert [r.question_id for r in results] == [10]
        assert score == 2

    def test_foreign_answer_counts_as_no_answer(self, quiz):
        results, score = score_answers(quiz, [(10, 110)])

        assert score == 0
        assert results[0].is_correct is False
        assert results[0].your_answer is None
        assert results[0].selected_answer_id is None

    def test_unanswered_question(self, quiz):
        results, _ = score_answers(quiz, [(10, None)])
        assert results[0].is_correct is False
        assert results[0].points_earned == 0

    def test_only_first_answer_per_question_counts(self, quiz):
        results, score = score_answers(quiz, [(10, 101), (10, 100)])
        assert len(results) == 1
        assert score == 0

    def test_percentage_zero_total(self):
        assert percentage_of(0, 0) == 0.0
        assert percentage_of(3, 4) == 75.0


class TestGradingPipeline:
    """End-to-end grading against an in-memory store."""

    def test_all_correct(self, store, users, quiz_factory, generator):
        quiz = load(store, quiz_factory(points=(1, 2, 3)))
        pipeline = GradingPipeline(store, generator)

        result = pipeline.grade(quiz.id, users["alice"].id, [(q.id, right(q)) for q in quiz.questions])

        assert result.score == 6
        assert result.total_points == 6
        assert result.percentage == 100.0
        assert result.improvement_suggestions == [ALL_CORRECT_SUGGESTION]
        assert result.completed_at is not None

    def test_partial_answers_total_covers_all_questions(self, store, users, quiz_factory, generator):
        quiz = load(store, quiz_factory(points=(1, 1, 2)))
        q1, q2, _ = quiz.questions

        result = GradingPipeline(store, generator).grade(
            quiz.id, users["alice"].id, [(q1.id, right(q1)), (q2.id, wrong(q2))]
        )

        assert result.score == 1
        assert result.total_points == 4
        assert result.percentage == 25.0
        assert len(result.question_results) == 2
        assert result.improvement_suggestions == FALLBACK_SUGGESTIONS

    def test_empty_submission_is_not_all_correct(self, store, users, quiz_factory, generator):
        quiz = load(store, quiz_factory())

        result = GradingPipeline(store, generator).grade(quiz.id, users["alice"].id, [])

        assert result.percentage == 0.0
        assert result.improvement_suggestions == FALLBACK_SUGGESTIONS

    def test_unanswered_questions_count_as_missed(self, store, users, quiz_factory):
        quiz = load(store, quiz_factory())
        q1, q2, q3 = quiz.questions
        generator = MagicMock()
        generator.generate_suggestions.return_value = ["Review the rest."]

        result = GradingPipeline(store, generator).grade(quiz.id, users["alice"].id, [(q1.id, right(q1))])

        summary = generator.generate_suggestions.call_args[0][0]
        assert not summary.all_correct
        assert summary.missed_questions == [q2.text, q3.text]
        assert result.improvement_suggestions == ["Review the rest."]

    def test_foreign_question_skipped(self, store, users, quiz_factory, generator):
        quiz = load(store, quiz_factory(points=(1, 1)))
        other = load(store, quiz_factory(subject="Science"))
        foreign = other.questions[0]
        q1 = quiz.questions[0]

        result = GradingPipeline(store, generator).grade(
            quiz.id, users["alice"].id, [(foreign.id, right(foreign)), (q1.id, right(q1))]
        )

        assert [r.question_id for r in result.question_results] == [q1.id]
        assert result.score == 1
        assert result.total_points == 2
        assert count_rows(store, SubmissionAnswer) == 1

    def test_rows_persisted_with_submission(self, store, users, quiz_factory, generator):
        quiz = load(store, quiz_factory())
        q1, q2, q3 = quiz.questions

        result = GradingPipeline(store, generator).grade(
            quiz.id, users["bob"].id, [(q1.id, right(q1)), (q2.id, None), (q3.id, wrong(q3))]
        )

        with store.read_session() as session:
            submission = store.get_submission(session, result.submission_id)
            assert submission.is_completed
            assert submission.score == 1
            assert submission.total_points == 3
            assert len(submission.answers) == 3
            assert sum(a.points_earned for a in submission.answers) == submission.score
            assert submission.suggestions == FALLBACK_SUGGESTIONS
            assert submission.answers[1].selected_answer_id is None

    def test_unknown_quiz_writes_nothing(self, store, users, generator):
        with pytest.raises(NotFoundError):
            GradingPipeline(store, generator).grade(404, users["alice"].id, [(1, 1)])

        assert count_rows(store, QuizSubmission) == 0
        assert count_rows(store, SubmissionAnswer) == 0

    def test_generator_failure_rolls_back(self, store, users, quiz_factory):
        quiz = load(store, quiz_factory())
        failing = MagicMock()
        failing.generate_suggestions.side_effect = RuntimeError("generator down")

        with pytest.raises(InternalError) as excinfo:
            GradingPipeline(store, failing).grade(
                quiz.id, users["alice"].id, [(q.id, wrong(q)) for q in quiz.questions]
            )

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert count_rows(store, QuizSubmission) == 0
        assert count_rows(store, SubmissionAnswer) == 0

    def test_identical_submissions_are_independent(self, store, users, quiz_factory, generator):
        quiz = load(store, quiz_factory(points=(2, 3)))
        answers = [(quiz.questions[0].id, right(quiz.questions[0])), (quiz.questions[1].id, None)]
        pipeline = GradingPipeline(store, generator)

        first = pipeline.grade(quiz.id, users["alice"].id, answers)
        second = pipeline.grade(quiz.id, users["alice"].id, answers)

        assert first.submission_id != second.submission_id
        assert (first.score, first.percentage) == (second.score, second.percentage) == (2, 40.0)

    def test_quiz_without_questions(self, store, users, quiz_factory, generator):
        quiz_id = quiz_factory(points=())

        result = GradingPipeline(store, generator).grade(quiz_id, users["alice"].id, [])

        assert result.total_points == 0
        assert result.percentage == 0.0
        assert result.question_results == []
        assert result.improvement_suggestions == [ALL_CORRECT_SUGGESTION]
