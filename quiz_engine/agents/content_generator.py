"""
Content Generator - LLM-backed quiz, hint, and study-suggestion generation.

Every operation degrades to deterministic fallback content when the LLM is
unreachable, misconfigured, or returns something that cannot be parsed.
Callers never see a provider failure from this module.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.prompts import PromptTemplate
from langchain_openai import ChatOpenAI

from ..config import AdaptiveConfig, config, token_tracker
from ..models.entities import Difficulty
from ..models.views import PerformanceSignal
from ..utils.validation import QUIZ_PAYLOAD_SCHEMA, SchemaValidator

logger = logging.getLogger(__name__)


FALLBACK_HINT = (
    "Think about the key concepts related to this topic and consider the context of the question."
)
ALL_CORRECT_SUGGESTION = "Great job! You answered all questions correctly."
FALLBACK_SUGGESTIONS = [
    "Review the topics you missed and practice similar problems.",
    "Focus on understanding the fundamental concepts before moving to advanced topics.",
]


@dataclass
class GeneratedAnswer:
    text: str
    is_correct: bool = False


@dataclass
class GeneratedQuestion:
    """A question as produced by the generator, before persistence."""
    text: str
    difficulty: Difficulty = Difficulty.MEDIUM
    points: int = 1
    hint: Optional[str] = None
    answers: List[GeneratedAnswer] = field(default_factory=list)


@dataclass
class GeneratedQuiz:
    """
    A generated quiz ready to be persisted.

    Attributes:
        title: Quiz title
        description: Short description
        subject: Subject the quiz covers
        grade_level: Target grade level
        duration: Time limit in minutes
        questions: Generated questions with answer options
        is_fallback: True when the content is the deterministic fallback quiz
    """
    title: str
    description: str
    subject: str
    grade_level: str
    duration: int
    questions: List[GeneratedQuestion] = field(default_factory=list)
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "grade_level": self.grade_level,
            "duration": self.duration,
            "is_fallback": self.is_fallback,
            "questions": [
                {
                    "text": q.text,
                    "difficulty": q.difficulty.label,
                    "points": q.points,
                    "hint": q.hint,
                    "answers": [{"text": a.text, "is_correct": a.is_correct} for a in q.answers],
                }
                for q in self.questions
            ],
        }


@dataclass
class SubmissionSummary:
    """What the suggestion prompt needs to know about a graded submission."""
    subject: str
    grade_level: str
    missed_questions: List[str] = field(default_factory=list)

    @property
    def all_correct(self) -> bool:
        return not self.missed_questions


def strip_code_fences(text: str) -> str:
    """Extract the body of a ```json (or bare ```) block, if present."""
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()
    if "```" in text:
        return text.split("```")[1].split("```")[0].strip()
    return text.strip()


def difficulty_label(average_percentage: float, settings: AdaptiveConfig) -> str:
    """Prompt wording for the requested difficulty."""
    if average_percentage >= settings.hard_threshold:
        return "challenging"
    if average_percentage >= settings.medium_threshold:
        return "medium"
    return "easy"


class ContentGenerator:
    """
    Generates quiz content through an OpenAI-compatible chat model.

    The LLM client is built on first use so that a missing API key results
    in fallback content rather than a construction error.

    Usage:
        generator = ContentGenerator()
        quiz = generator.generate_quiz("Math", "5", count=10)
        hint = generator.generate_hint("What is 7 x 8?")
    """

    def __init__(
        self,
        llm: Optional[Any] = None,
        model_name: Optional[str] = None,
        settings: Optional[AdaptiveConfig] = None,
    ):
        """
        Initialize content generator.

        Args:
            llm: Pre-built chat model (mainly for tests); created lazily if None
            model_name: LLM model name (default: config.model.model_name)
            settings: Adaptive settings for difficulty wording and duration
        """
        self._llm = llm
        self.model_name = model_name or config.model.model_name
        self.settings = settings or config.adaptive
        self.validator = SchemaValidator(QUIZ_PAYLOAD_SCHEMA)

        self.quiz_prompt = PromptTemplate(
            input_variables=["difficulty", "subject", "grade_level", "count", "focus"],
            template="""Generate a {difficulty} {subject} quiz for grade {grade_level} with {count} multiple choice questions.
{focus}
Each question must have exactly one correct answer. Include a short hint per question that does not reveal the answer.

Format the response as JSON with this structure:
{{
  "title": "Quiz Title",
  "description": "Quiz Description",
  "questions": [
    {{
      "text": "Question text",
      "hint": "Short hint",
      "difficulty": "Easy|Medium|Hard",
      "points": 1,
      "answers": [
        {{"text": "Answer 1", "isCorrect": true}},
        {{"text": "Answer 2", "isCorrect": false}},
        {{"text": "Answer 3", "isCorrect": false}},
        {{"text": "Answer 4", "isCorrect": false}}
      ]
    }}
  ]
}}

Return ONLY valid JSON, no additional text.""",
        )

        self.hint_prompt = PromptTemplate(
            input_variables=["question"],
            template=(
                "Generate a helpful hint for this question without giving away the answer "
                "directly: '{question}'. The hint should guide the student to think about "
                "the solution approach. Reply with the hint only (1-2 sentences)."
            ),
        )

        self.suggestion_prompt = PromptTemplate(
            input_variables=["subject", "grade_level", "topics"],
            template=(
                "Based on these incorrect answers in a {subject} quiz for grade {grade_level}, "
                "provide 2 specific study suggestions, one per line: {topics}"
            ),
        )

    @property
    def llm(self):
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.model_name,
                temperature=config.model.temperature,
                max_tokens=config.model.max_tokens,
                api_key=config.model.api_key,
                base_url=config.model.base_url,
                timeout=config.model.request_timeout,
            )
        return self._llm

    def _invoke(self, prompt: str, temperature: float) -> str:
        """Send a prompt at the given temperature and return the reply text, recording token usage."""
        response = self.llm.invoke(prompt, temperature=temperature)

        usage = getattr(response, "usage_metadata", None)
        if config.logging.log_tokens and isinstance(usage, dict):
            token_tracker.add_tokens(
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
            )

        content = response.content
        if not isinstance(content, str):
            raise ValueError(f"Unexpected LLM content type: {type(content).__name__}")
        return content

    # ==================== Quizzes ====================

    def generate_quiz(
        self,
        subject: str,
        grade_level: str,
        count: int,
        topics: Optional[str] = None,
        performance: Optional[PerformanceSignal] = None,
    ) -> GeneratedQuiz:
        """
        Generate a multiple-choice quiz.

        Args:
            subject: Quiz subject
            grade_level: Target grade level
            count: Number of questions requested
            topics: Optional free-text topics to focus on
            performance: Learner's recent performance; drives prompt difficulty

        Returns:
            GeneratedQuiz (the fallback quiz if generation fails)
        """
        average = (
            performance.average_percentage
            if performance is not None
            else self.settings.default_percentage
        )
        prompt = self.quiz_prompt.format(
            difficulty=difficulty_label(average, self.settings),
            subject=subject,
            grade_level=grade_level,
            count=count,
            focus=f"Focus on: {topics}" if topics else "",
        )

        try:
            payload = json.loads(strip_code_fences(self._invoke(prompt, config.model.quiz_temperature)))
        except Exception as e:
            logger.warning("Quiz generation failed for %s/%s, using fallback: %s", subject, grade_level, e)
            return self.fallback_quiz(subject, grade_level, count)

        result = self.validator.validate(payload)
        if not result:
            logger.warning("Generated quiz payload rejected, using fallback:\n%s", result)
            return self.fallback_quiz(subject, grade_level, count)

        quiz = self._quiz_from_payload(payload, subject, grade_level, count)
        logger.info("Generated %s quiz with %d question(s)", subject, len(quiz.questions))
        return quiz

    def _quiz_from_payload(
        self,
        payload: Dict[str, Any],
        subject: str,
        grade_level: str,
        count: int,
    ) -> GeneratedQuiz:
        questions = [
            GeneratedQuestion(
                text=q["text"],
                difficulty=Difficulty.parse(q.get("difficulty", ""), default=Difficulty.MEDIUM),
                points=q.get("points", 1),
                hint=q.get("hint") or None,
                answers=[GeneratedAnswer(text=a["text"], is_correct=a["isCorrect"]) for a in q["answers"]],
            )
            for q in payload["questions"][:count]
        ]

        return GeneratedQuiz(
            title=payload.get("title") or f"{subject} Quiz - Grade {grade_level}",
            description=payload.get("description") or f"AI generated quiz covering {subject} topics",
            subject=subject,
            grade_level=grade_level,
            duration=count * self.settings.minutes_per_question,
            questions=questions,
        )

    def fallback_quiz(self, subject: str, grade_level: str, count: int) -> GeneratedQuiz:
        """Deterministic placeholder quiz with `count` questions."""
        questions = [
            GeneratedQuestion(
                text=f"Sample {subject} question {i} for grade {grade_level}",
                difficulty=Difficulty.MEDIUM,
                points=1,
                answers=[
                    GeneratedAnswer(text="Correct answer", is_correct=True),
                    GeneratedAnswer(text="Incorrect option 1"),
                    GeneratedAnswer(text="Incorrect option 2"),
                    GeneratedAnswer(text="Incorrect option 3"),
                ],
            )
            for i in range(1, count + 1)
        ]
        return GeneratedQuiz(
            title=f"{subject} Quiz - Grade {grade_level}",
            description=f"Practice quiz covering {subject} topics for grade {grade_level}",
            subject=subject,
            grade_level=grade_level,
            duration=count * self.settings.minutes_per_question,
            questions=questions,
            is_fallback=True,
        )

    # ==================== Hints ====================

    def generate_hint(self, question_text: str) -> str:
        """Generate a hint that guides without revealing the answer."""
        try:
            hint = self._invoke(
                self.hint_prompt.format(question=question_text), config.model.hint_temperature
            ).strip()
        except Exception as e:
            logger.warning("Hint generation failed, using fallback: %s", e)
            return FALLBACK_HINT

        return hint or FALLBACK_HINT

    # ==================== Suggestions ====================

    def generate_suggestions(self, summary: SubmissionSummary) -> List[str]:
        """
        Study suggestions for a graded submission.

        Returns:
            One congratulation line when nothing was missed; otherwise the
            first two non-blank lines of the LLM reply, or the fixed fallback
            pair when generation fails
        """
        if summary.all_correct:
            return [ALL_CORRECT_SUGGESTION]

        prompt = self.suggestion_prompt.format(
            subject=summary.subject,
            grade_level=summary.grade_level,
            topics=", ".join(summary.missed_questions[:3]),
        )

        try:
            reply = self._invoke(prompt, config.model.suggestion_temperature)
        except Exception as e:
            logger.warning("Suggestion generation failed, using fallback: %s", e)
            return list(FALLBACK_SUGGESTIONS)

        lines = [line.strip() for line in reply.split("\n") if line.strip()]
        return lines[:2] or list(FALLBACK_SUGGESTIONS)
