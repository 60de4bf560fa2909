"""
NoteDigest Backend — Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the Gemini adapters, ImageService, the app factory and the CLI.
When:  Loaded once at module import time.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development. The only value
    without a usable default is GEMINI_API_KEY.
    """

    # ── Google Gemini ─────────────────────────────────────────────────────
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key used by both text and vision generators",
    )

    # What: Model used for summaries (text in, text out)
    gemini_text_model: str = Field(default="gemini-2.5-flash-lite")

    # What: Multimodal model used to transcribe handwritten pages
    gemini_vision_model: str = Field(default="gemini-2.5-flash")

    # What: Output token caps per call kind
    # Why 4000 for vision: a dense page of math notes transcribes to a few thousand tokens
    text_max_output_tokens: int = Field(default=1000, ge=64, le=8192)
    vision_max_output_tokens: int = Field(default=4000, ge=256, le=8192)

    # What: Per-request timeout handed to the Gemini SDK (seconds)
    gemini_request_timeout: int = Field(default=60, ge=5, le=600)

    # ── Summary Validation ────────────────────────────────────────────────
    # What: Defaults for SummaryValidator thresholds
    # A summary is TOO_LONG only when BOTH the ratio and the word floor are exceeded
    summary_max_length_ratio: float = Field(default=0.6, gt=0.0, le=10.0)
    summary_min_word_floor: int = Field(default=150, ge=0)
    summary_min_overlap_ratio: float = Field(default=0.2, ge=0.0, le=1.0)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    # What: After N consecutive Gemini failures, fail fast for M seconds
    cb_failure_threshold: int = Field(default=5, ge=2, le=20)
    cb_recovery_timeout: int = Field(default=60, ge=10, le=300)

    # ── Uploads ───────────────────────────────────────────────────────────
    # Default: 10MB
    max_file_size: int = Field(default=10_485_760, ge=1_048_576, le=52_428_800)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        Validates that critical settings are configured.

        When:  Called during app startup (lifespan) and by the CLI.
        Raises: ValueError listing every missing setting.
        """
        errors = []
        if not self.gemini_api_key or self.gemini_api_key == "your_gemini_api_key_here":
            errors.append(
                "GEMINI_API_KEY is not set. "
                "Get a free key at https://aistudio.google.com/app/apikey"
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance; configuration is immutable after startup
settings = Settings()
