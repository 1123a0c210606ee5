"""
Configuration management for QuizEngine.

This module centralizes all configuration settings following 12-factor app principles:
- Secrets loaded from environment variables
- Sensible defaults for development
- Adaptive-difficulty constants grouped in one explicit struct
- Single source of truth for all settings
- Thread-safe token tracking
"""

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class ModelConfig:
    """LLM model configuration for the OpenAI-compatible content provider."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    model_name: str = field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
    )
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )

    temperature: float = 0.7
    max_tokens: int = 1000

    # Agent-specific temperatures
    quiz_temperature: float = 0.7
    hint_temperature: float = 0.5
    suggestion_temperature: float = 0.5

    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )


@dataclass(frozen=True)
class AdaptiveConfig:
    """
    Constants driving the performance estimator and difficulty adapter.

    Passed explicitly into PerformanceEstimator and DifficultyAdapter.
    """

    window_size: int = 5  # most recent completed submissions considered
    default_percentage: float = 50.0  # assumed skill with no history
    hard_threshold: float = 80.0  # average >= 80 -> Hard
    medium_threshold: float = 60.0  # average >= 60 -> Medium
    minutes_per_question: int = 2


@dataclass
class QueryConfig:
    """Limits for paginated and ranked reads."""

    default_page_size: int = 10
    max_page_size: int = 100
    default_leaderboard_size: int = 10
    max_leaderboard_size: int = 100
    max_questions_per_quiz: int = 50


@dataclass
class PathConfig:
    """File system paths."""

    data_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent / "data")

    def prepare_filesystem(self):
        """
        Create the data directory if it doesn't exist.

        Separated from __post_init__ to avoid side-effects on import.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class DatabaseConfig:
    """Entity store connection settings."""

    url: Optional[str] = field(default_factory=lambda: os.getenv("QUIZ_DATABASE_URL"))
    echo: bool = False

    def resolve_url(self, data_dir: Path) -> str:
        """Return the configured URL, or a SQLite file under data_dir."""
        if self.url:
            return self.url
        return f"sqlite:///{data_dir / 'quiz_engine.db'}"


@dataclass
class LoggingConfig:
    """Logging and metrics configuration with env-driven pricing."""

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))
    log_tokens: bool = True

    cost_per_1k_input: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_INPUT", "0.0015"))
    )
    cost_per_1k_output: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_OUTPUT", "0.0020"))
    )


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from quiz_engine.config import config

        window = config.adaptive.window_size
        url = config.database.resolve_url(config.paths.data_dir)

        # Prepare filesystem (call once at startup)
        config.prepare_fs()
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.model = ModelConfig()
            cls._instance.adaptive = AdaptiveConfig()
            cls._instance.query = QueryConfig()
            cls._instance.database = DatabaseConfig()
            cls._instance.logging = LoggingConfig()

        return cls._instance

    def prepare_fs(self):
        """Prepare filesystem (create directories). Call once at startup."""
        self.paths.prepare_filesystem()

    def database_url(self) -> str:
        return self.database.resolve_url(self.paths.data_dir)

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.model.api_key:
            errors.append("OPENAI_API_KEY not set in environment (fallback content will be served)")

        for name in ("temperature", "quiz_temperature", "hint_temperature", "suggestion_temperature"):
            value = getattr(self.model, name)
            if not (0 <= value <= 2):
                errors.append(f"{name} must be in [0, 2], got {value}")

        if self.model.max_tokens <= 0:
            errors.append(f"max_tokens must be > 0, got {self.model.max_tokens}")

        if self.adaptive.window_size < 1:
            errors.append(f"window_size must be >= 1, got {self.adaptive.window_size}")

        if not (0 <= self.adaptive.default_percentage <= 100):
            errors.append(
                f"default_percentage must be in [0, 100], got {self.adaptive.default_percentage}"
            )

        if not (0 <= self.adaptive.medium_threshold <= self.adaptive.hard_threshold <= 100):
            errors.append(
                "thresholds must satisfy 0 <= medium_threshold <= hard_threshold <= 100, "
                f"got medium={self.adaptive.medium_threshold}, hard={self.adaptive.hard_threshold}"
            )

        if self.query.default_page_size > self.query.max_page_size:
            errors.append(
                f"default_page_size ({self.query.default_page_size}) must be <= "
                f"max_page_size ({self.query.max_page_size})"
            )

        if self.query.default_leaderboard_size > self.query.max_leaderboard_size:
            errors.append(
                f"default_leaderboard_size ({self.query.default_leaderboard_size}) must be <= "
                f"max_leaderboard_size ({self.query.max_leaderboard_size})"
            )

        if self.logging.log_format not in {"text", "json"}:
            errors.append(f"LOG_FORMAT must be 'text' or 'json', got {self.logging.log_format!r}")

        return errors


# Global config instance
config = Config()


class TokenTracker:
    """
    Thread-safe tracker for token usage and estimated costs.

    Usage:
        from quiz_engine.config import token_tracker

        token_tracker.add_tokens(input_tokens=100, output_tokens=50)
        print(token_tracker.summary())
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_calls = 0

    def add_tokens(self, input_tokens: int, output_tokens: int):
        """Add tokens from an API call (thread-safe)."""
        with self._lock:
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
            self.total_calls += 1

    def total_tokens(self) -> int:
        with self._lock:
            return self.input_tokens + self.output_tokens

    def estimated_cost(self) -> float:
        """Calculate estimated cost in USD (thread-safe)."""
        with self._lock:
            return self._cost(self.input_tokens, self.output_tokens)

    @staticmethod
    def _cost(input_tokens: int, output_tokens: int) -> float:
        input_cost = (input_tokens / 1000) * config.logging.cost_per_1k_input
        output_cost = (output_tokens / 1000) * config.logging.cost_per_1k_output
        return input_cost + output_cost

    def summary(self) -> str:
        """Get formatted summary of usage."""
        stats = self.get_stats()
        return (
            "Token Usage Summary:\n"
            f"  API Calls: {stats['calls']}\n"
            f"  Input Tokens: {stats['input_tokens']:,}\n"
            f"  Output Tokens: {stats['output_tokens']:,}\n"
            f"  Total Tokens: {stats['total_tokens']:,}\n"
            f"  Estimated Cost: ${stats['estimated_cost']:.4f}"
        )

    def reset(self):
        """Reset counters (thread-safe)."""
        with self._lock:
            self.input_tokens = 0
            self.output_tokens = 0
            self.total_calls = 0

    def get_stats(self) -> dict:
        """Get current stats as dict (thread-safe)."""
        with self._lock:
            input_tokens = self.input_tokens
            output_tokens = self.output_tokens
            total_calls = self.total_calls

        return {
            "calls": total_calls,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "estimated_cost": self._cost(input_tokens, output_tokens),
        }


# Global token tracker instance
token_tracker = TokenTracker()

