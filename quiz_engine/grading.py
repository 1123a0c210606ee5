"""
Grading pipeline: score a quiz submission and persist it atomically.

Scoring is deterministic and works on the grading projection of a quiz.
Persistence of the submission, its answer rows, the score update, and the
improvement suggestions happens in a single store transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from .agents.content_generator import SubmissionSummary
from .errors import InternalError, NotFoundError, QuizEngineError
from .models.entities import QuizSubmission, SubmissionAnswer, utcnow
from .models.views import GradingQuiz, GradingResult, QuestionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerSubmission:
    """One (question, selected answer) pair; selected_answer_id None means unanswered."""
    question_id: int
    selected_answer_id: Optional[int] = None


AnswerInput = Union[AnswerSubmission, Tuple[int, Optional[int]]]


def _coerce(answer: AnswerInput) -> AnswerSubmission:
    if isinstance(answer, AnswerSubmission):
        return answer
    question_id, selected_answer_id = answer
    return AnswerSubmission(question_id=question_id, selected_answer_id=selected_answer_id)


def score_answers(
    quiz: GradingQuiz,
    answers: Iterable[AnswerInput],
) -> Tuple[List[QuestionResult], int]:
    """
    Score submitted answers against a quiz.

    Question ids that are not part of the quiz are skipped. A selected answer
    id that does not belong to its question counts as no answer. Only the
    first answer given for a question is scored.

    Args:
        quiz: Grading projection of the quiz
        answers: Submitted (question_id, selected_answer_id) pairs

    Returns:
        Tuple of (per-question results in submission order, score)
    """
    results: List[QuestionResult] = []
    seen = set()

    for answer in map(_coerce, answers):
        question = quiz.find_question(answer.question_id)
        if question is None:
            logger.debug("Skipping question %s: not part of quiz %s", answer.question_id, quiz.id)
            continue
        if question.id in seen:
            logger.debug("Skipping repeated answer for question %s", question.id)
            continue
        seen.add(question.id)

        selected = question.find_answer(answer.selected_answer_id)
        is_correct = selected is not None and selected.is_correct
        correct = question.correct_answer

        results.append(QuestionResult(
            question_id=question.id,
            question_text=question.text,
            is_correct=is_correct,
            points_earned=question.points if is_correct else 0,
            correct_answer=correct.text if correct else None,
            your_answer=selected.text if selected else None,
            selected_answer_id=selected.id if selected else None,
        ))

    return results, sum(r.points_earned for r in results)


def percentage_of(score: int, total_points: int) -> float:
    """score / total * 100, or 0 when the quiz is worth nothing."""
    if total_points <= 0:
        return 0.0
    return score / total_points * 100


class GradingPipeline:
    """
    Grades submissions and records them.

    Usage:
        pipeline = GradingPipeline(store, generator)
        result = pipeline.grade(quiz_id=3, user_id=1, answers=[(10, 41), (11, None)])
        print(result.score, result.percentage)
    """

    def __init__(self, store, generator):
        """
        Initialize the pipeline.

        Args:
            store: EntityStore providing transactions
            generator: Object with generate_suggestions(SubmissionSummary) -> list[str]
        """
        self.store = store
        self.generator = generator

    def grade(self, quiz_id: int, user_id: int, answers: Iterable[AnswerInput]) -> GradingResult:
        """
        Grade and persist one submission.

        Everything (submission row, answer rows, score fields, suggestions)
        is committed together or not at all.

        Raises:
            NotFoundError: If the quiz does not exist (nothing is written)
            InternalError: If any step fails unexpectedly (everything is rolled back)
        """
        answers = list(answers)
        try:
            with self.store.transaction() as session:
                quiz = self.store.load_quiz(session, quiz_id)
                if quiz is None:
                    raise NotFoundError("Quiz", quiz_id)
                grading_quiz = GradingQuiz.from_entity(quiz)

                now = utcnow()
                submission = QuizSubmission(
                    user_id=user_id,
                    quiz_id=quiz.id,
                    started_at=now,
                    completed_at=now,
                )
                session.add(submission)
                session.flush()

                results, score = score_answers(grading_quiz, answers)
                answered_correctly = {r.question_id for r in results if r.is_correct}
                for result in results:
                    session.add(SubmissionAnswer(
                        submission_id=submission.id,
                        question_id=result.question_id,
                        selected_answer_id=result.selected_answer_id,
                        is_correct=result.is_correct,
                        points_earned=result.points_earned,
                    ))

                submission.score = score
                submission.total_points = grading_quiz.total_points
                submission.percentage = percentage_of(score, submission.total_points)

                suggestions = self.generator.generate_suggestions(SubmissionSummary(
                    subject=grading_quiz.subject,
                    grade_level=grading_quiz.grade_level,
                    missed_questions=[
                        q.text for q in grading_quiz.questions if q.id not in answered_correctly
                    ],
                ))
                submission.improvement_suggestions = "\n".join(suggestions)
                session.flush()

                grading_result = GradingResult(
                    submission_id=submission.id,
                    score=submission.score,
                    total_points=submission.total_points,
                    percentage=submission.percentage,
                    completed_at=submission.completed_at,
                    improvement_suggestions=list(suggestions),
                    question_results=results,
                )
        except QuizEngineError:
            raise
        except Exception as e:
            logger.exception("Grading failed for quiz %s, user %s; submission rolled back", quiz_id, user_id)
            raise InternalError(f"Failed to grade submission for quiz {quiz_id}") from e

        logger.info(
            "Graded submission %s: user %s quiz %s scored %d/%d (%.2f%%)",
            grading_result.submission_id, user_id, quiz_id,
            grading_result.score, grading_result.total_points, grading_result.percentage,
        )
        return grading_result
