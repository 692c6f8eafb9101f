"""
DreamWeaver Configuration

Loads configuration from environment variables with sensible defaults.
Components never read this class directly; build a ``ConductorSettings``
from it and pass that at construction time.
"""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # LLM Provider Configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    # "pro" tier model (full reasoning)
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-5-mini")
    # "flash" tier model (cheap retries and self-correction)
    LLM_FAST_MODEL: str = os.getenv("LLM_FAST_MODEL", "gpt-5-nano")

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # "edge" tier: zero marginal cost, served by a local Ollama endpoint
    EDGE_LLM_MODEL: str = os.getenv("EDGE_LLM_MODEL", "llama3.1")
    OLLAMA_BASE_URL: str | None = os.getenv("OLLAMA_BASE_URL")

    # Recovery
    MAX_TURN_ATTEMPTS: int = int(os.getenv("MAX_TURN_ATTEMPTS", "3"))
    RETRY_BACKOFF_SECONDS: float = float(os.getenv("RETRY_BACKOFF_SECONDS", "0.5"))
    RETRY_BACKOFF_MAX_SECONDS: float = float(os.getenv("RETRY_BACKOFF_MAX_SECONDS", "8"))
    FINOPS_TURN_BUDGET_USD: float = float(os.getenv("FINOPS_TURN_BUDGET_USD", "0.05"))

    # Verification / memory
    VERIFICATION_CONFIDENCE_THRESHOLD: float = float(
        os.getenv("VERIFICATION_CONFIDENCE_THRESHOLD", "0.8")
    )
    SESSION_HISTORY_LIMIT: int = int(os.getenv("SESSION_HISTORY_LIMIT", "10"))
    SUMMARY_WINDOW: int = int(os.getenv("SUMMARY_WINDOW", "50"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if cls.MAX_TURN_ATTEMPTS < 1:
            raise ValueError("MAX_TURN_ATTEMPTS must be >= 1")

        if not 0.0 <= cls.VERIFICATION_CONFIDENCE_THRESHOLD <= 1.0:
            raise ValueError("VERIFICATION_CONFIDENCE_THRESHOLD must be within [0, 1]")

        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "DreamWeaver Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  Models: pro={cls.LLM_MODEL} flash={cls.LLM_FAST_MODEL} edge={cls.EDGE_LLM_MODEL}",
            f"  Max attempts per turn: {cls.MAX_TURN_ATTEMPTS}",
            f"  FinOps budget per turn: ${cls.FINOPS_TURN_BUDGET_USD:.2f}",
            f"  Verification threshold: {cls.VERIFICATION_CONFIDENCE_THRESHOLD}",
            f"  Session history limit: {cls.SESSION_HISTORY_LIMIT}",
            f"  Log level: {cls.LOG_LEVEL}",
        ]
        return "\n".join(lines)


@dataclass(frozen=True)
class ConductorSettings:
    """Explicit configuration object handed to runtime components."""

    llm_provider: str = "openai"
    pro_model: str = "gpt-5-mini"
    flash_model: str = "gpt-5-nano"
    edge_model: str = "llama3.1"
    ollama_base_url: str | None = None
    max_turn_attempts: int = 3
    retry_backoff_seconds: float = 0.5
    retry_backoff_max_seconds: float = 8.0
    finops_turn_budget_usd: float = 0.05
    verification_confidence_threshold: float = 0.8
    session_history_limit: int = 10
    summary_window: int = 50

    @classmethod
    def from_config(cls) -> "ConductorSettings":
        """Snapshot the environment-driven ``Config`` into an immutable settings object."""
        return cls(
            llm_provider=Config.LLM_PROVIDER,
            pro_model=Config.LLM_MODEL,
            flash_model=Config.LLM_FAST_MODEL,
            edge_model=Config.EDGE_LLM_MODEL,
            ollama_base_url=Config.OLLAMA_BASE_URL,
            max_turn_attempts=Config.MAX_TURN_ATTEMPTS,
            retry_backoff_seconds=Config.RETRY_BACKOFF_SECONDS,
            retry_backoff_max_seconds=Config.RETRY_BACKOFF_MAX_SECONDS,
            finops_turn_budget_usd=Config.FINOPS_TURN_BUDGET_USD,
            verification_confidence_threshold=Config.VERIFICATION_CONFIDENCE_THRESHOLD,
            session_history_limit=Config.SESSION_HISTORY_LIMIT,
            summary_window=Config.SUMMARY_WINDOW,
        )
