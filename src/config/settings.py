# src/config/settings.py
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: provider choice
and keys, ledger/context/story backends, progress estimation tuning,
object storage and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === AI PROVIDERS ===
    text_provider: Literal["google", "openai", "anthropic"] = "google"
    image_provider: Literal["openai"] = "openai"
    speech_provider: Literal["openai"] = "openai"

    google_text_model: str = "gemini-2.5-flash"
    openai_text_model: str = "gpt-5"
    anthropic_text_model: str = "claude-sonnet-4-20250514"
    openai_image_model: str = "gpt-image-1"
    openai_image_size: str = "1024x1536"
    openai_speech_model: str = "gpt-4o-mini-tts"
    openai_speech_voice: str = "alloy"

    google_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    text_temperature: float = 1.0
    text_max_tokens: int = 8192

    # === STEP LEDGER ===
    ledger_backend: Literal["memory", "sqlite"] = "sqlite"
    ledger_sqlite_path: Path = Path("~/.storyloom/workflows.db")

    # === STORY RECORDS ===
    story_backend: Literal["memory", "sqlite"] = "sqlite"
    story_sqlite_path: Path = Path("~/.storyloom/stories.db")

    # === CONVERSATION CONTEXT ===
    context_backend: Literal["memory", "sqlite", "redis"] = "memory"
    context_sqlite_path: Path = Path("~/.storyloom/contexts.db")
    context_redis_url: str = ""
    context_max_age_hours: int = 24

    # === PROGRESS ESTIMATION ===
    default_chapter_count: int = 4
    progress_cache_ttl_s: float = 300.0
    progress_retry_attempts: int = 3
    progress_retry_delay_s: float = 1.0

    # === CHAPTER MEMORY ===
    story_context_max_chars: int = 12000
    outline_summary_max_chars: int = 3500

    # === OBJECT STORAGE ===
    storage_backend: Literal["local", "s3"] = "local"
    storage_local_root: Path = Path("~/.storyloom/storage")
    storage_public_base_url: str = ""
    storage_s3_bucket: str = ""
    storage_s3_prefix: str = "storyloom/"
    storage_s3_region: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "default_chapter_count",
        "progress_retry_attempts",
        "context_max_age_hours",
        "story_context_max_chars",
    )
    @classmethod
    def validate_positive_int(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("progress_cache_ttl_s", "progress_retry_delay_s")
    @classmethod
    def validate_non_negative(cls, v: float, info) -> float:  # noqa: N805
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.context_backend == "redis" and not self.context_redis_url:
            errors.append("CONTEXT_BACKEND=redis requires CONTEXT_REDIS_URL")

        if self.storage_backend == "s3" and not self.storage_s3_bucket:
            errors.append("STORAGE_BACKEND=s3 requires STORAGE_S3_BUCKET")

        if self.outline_summary_max_chars < 100:
            errors.append("OUTLINE_SUMMARY_MAX_CHARS must be >= 100")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def text_model(self) -> str:
        """Model name for the configured text provider."""
        return {
            "google": self.google_text_model,
            "openai": self.openai_text_model,
            "anthropic": self.anthropic_text_model,
        }[self.text_provider]

    @property
    def image_model(self) -> str:
        """Model name for the configured image provider."""
        return {
            "openai": self.openai_image_model,
        }[self.image_provider]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
