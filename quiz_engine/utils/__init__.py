"""
Utility modules for the quiz engine.

This module contains:
- validation: JSON Schema validation for requests and generated content
- persistence: SQLAlchemy-backed entity store with transactional writes
"""

from .validation import (
    QUIZ_PAYLOAD_SCHEMA,
    SchemaValidator,
    ValidationResult,
    validate_request,
)
from .persistence import (
    EntityStore,
    get_store,
)

__all__ = [
    # Validation
    "QUIZ_PAYLOAD_SCHEMA",
    "SchemaValidator",
    "ValidationResult",
    "validate_request",
    # Persistence
    "EntityStore",
    "get_store",
]
