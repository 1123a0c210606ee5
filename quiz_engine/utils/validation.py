"""
Schema validation utilities for QuizEngine.

Provides JSON Schema validation with clear error messages for:
- Request payloads (generate, submit, history, leaderboard), checked before
  any operation reaches the engine
- Content-generator payloads, so loosely-typed LLM output is mapped onto a
  strict shape or rejected in favour of fallback content
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import ValidationError as SchemaError

from ..errors import ValidationError


# ==================== Request schemas ====================

GENERATE_QUIZ_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "subject": {"type": "string", "minLength": 1, "maxLength": 100},
        "grade_level": {"type": "string", "minLength": 1, "maxLength": 50},
        "count": {"type": "integer", "minimum": 1, "maximum": 50},
        "topics": {"type": ["string", "null"], "maxLength": 500},
    },
    "required": ["subject", "grade_level", "count"],
    "additionalProperties": False,
}

SUBMIT_QUIZ_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "quiz_id": {"type": "integer", "minimum": 1},
        "answers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question_id": {"type": "integer"},
                    "selected_answer_id": {"type": ["integer", "null"]},
                },
                "required": ["question_id"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["quiz_id", "answers"],
    "additionalProperties": False,
}

HISTORY_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "subject": {"type": ["string", "null"]},
        "grade_level": {"type": ["string", "null"]},
        "min_score": {"type": ["integer", "null"], "minimum": 0},
        "max_score": {"type": ["integer", "null"], "minimum": 0},
        "from_date": {"type": ["string", "null"]},
        "to_date": {"type": ["string", "null"]},
        "page_number": {"type": "integer", "minimum": 1},
        "page_size": {"type": "integer", "minimum": 1, "maximum": 100},
    },
    "required": ["page_number", "page_size"],
    "additionalProperties": False,
}

LEADERBOARD_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "subject": {"type": ["string", "null"]},
        "grade_level": {"type": ["string", "null"]},
        "top": {"type": "integer", "minimum": 1, "maximum": 100},
    },
    "required": ["top"],
    "additionalProperties": False,
}


# ==================== Content-generator payload schema ====================

QUIZ_PAYLOAD_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "title": {"type": "string", "minLength": 1, "maxLength": 200},
        "description": {"type": "string", "maxLength": 1000},
        "questions": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "text": {"type": "string", "minLength": 1, "maxLength": 1000},
                    "hint": {"type": ["string", "null"], "maxLength": 500},
                    "difficulty": {
                        "type": "string",
                        "enum": ["Easy", "Medium", "Hard", "easy", "medium", "hard"],
                    },
                    "points": {"type": "integer", "minimum": 1, "maximum": 100},
                    "answers": {
                        "type": "array",
                        "minItems": 2,
                        "items": {
                            "type": "object",
                            "properties": {
                                "text": {"type": "string", "minLength": 1, "maxLength": 500},
                                "isCorrect": {"type": "boolean"},
                            },
                            "required": ["text", "isCorrect"],
                        },
                        "contains": {
                            "type": "object",
                            "properties": {"isCorrect": {"const": True}},
                            "required": ["isCorrect"],
                        },
                    },
                },
                "required": ["text", "answers"],
            },
        },
    },
    "required": ["questions"],
}


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data
    """

    def __init__(self, valid: bool, errors: list[str], data: Any = None):
        self.valid = valid
        self.errors = errors
        self.data = data

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            return "Validation passed"
        return f"Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator.

    Usage:
        validator = SchemaValidator(QUIZ_PAYLOAD_SCHEMA)
        result = validator.validate(data)
        if not result:
            print(result.errors)
    """

    def __init__(self, schema: Dict[str, Any] | Path | str):
        """
        Initialize validator with a schema dict or a path to a schema file.

        Args:
            schema: JSON Schema as a dict, or path to a JSON Schema file
        """
        if isinstance(schema, (str, Path)):
            with open(schema, "r") as f:
                schema = json.load(f)
        self.schema = schema
        Draft7Validator.check_schema(self.schema)
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: Any) -> ValidationResult:
        """
        Validate data against schema.

        Returns:
            ValidationResult with validation status and any errors
        """
        errors = [
            self._format_error(error)
            for error in sorted(self.validator.iter_errors(data), key=lambda e: list(e.path))
        ]
        if errors:
            return ValidationResult(valid=False, errors=errors, data=data)
        return ValidationResult(valid=True, errors=[], data=data)

    def _format_error(self, error: SchemaError) -> str:
        """Convert a jsonschema error to a readable message with its location."""
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        return f"At '{path}': {error.message} [validator={error.validator}]"


_REQUEST_VALIDATORS: Dict[str, SchemaValidator] = {
    "generate_quiz": SchemaValidator(GENERATE_QUIZ_REQUEST_SCHEMA),
    "submit_quiz": SchemaValidator(SUBMIT_QUIZ_REQUEST_SCHEMA),
    "history": SchemaValidator(HISTORY_REQUEST_SCHEMA),
    "leaderboard": SchemaValidator(LEADERBOARD_REQUEST_SCHEMA),
}


def validate_request(kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a request payload of the given kind.

    Args:
        kind: One of "generate_quiz", "submit_quiz", "history", "leaderboard"
        payload: Request data

    Returns:
        The payload, unchanged, when valid

    Raises:
        ValidationError: If the payload does not match its schema
    """
    validator: Optional[SchemaValidator] = _REQUEST_VALIDATORS.get(kind)
    if validator is None:
        raise KeyError(f"Unknown request kind: {kind}")

    result = validator.validate(payload)
    if not result:
        raise ValidationError(result.errors)
    return payload
