"""
Error taxonomy for the grading and adaptive-performance engine.

- NotFoundError: a referenced quiz, question, or submission does not exist
- ValidationError: malformed request payload, rejected before reaching the core
- InternalError: persistence or transaction failure (the transaction was rolled back)
"""

from __future__ import annotations

from typing import List, Optional


class QuizEngineError(Exception):
    """Base class for all engine errors."""


class NotFoundError(QuizEngineError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, identifier: object):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class ValidationError(QuizEngineError):
    """Raised when a request payload fails schema validation."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or "Invalid request: " + "; ".join(self.errors))


class InternalError(QuizEngineError):
    """Raised when a persistence or downstream failure aborted an operation."""
