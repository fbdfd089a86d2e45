"""
Engine Settings.

Centralized configuration using Pydantic Settings with environment variable loading.
Every field has a default so the engine can run with no environment at all.

Decision thresholds (card type, caption and excerpt limits, sentinel tag) are
constants in nugget_engine.constants and are not configurable.

Production Mode:
    When app_env="production", additional validations apply:
    - log_json must be True
    - enrichment_timeout_seconds cannot exceed 10 seconds
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of console key/value output",
    )

    # -------------------------------------------------------------------------
    # Enrichment (link previews)
    # -------------------------------------------------------------------------
    enrichment_enabled: bool = Field(
        default=True,
        description="Fetch preview metadata for link-like primary media",
    )
    enrichment_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Hard upper bound on a single enrichment lookup",
    )
    enrichment_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="User agent sent with preview requests",
    )
    enrichment_max_retries: int = Field(
        default=2,
        ge=1,
        description="Attempts per preview request on transport errors",
    )
    enrichment_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before the preview circuit opens",
    )
    enrichment_recovery_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds before an open preview circuit lets a trial request through",
    )

    # -------------------------------------------------------------------------
    # Supabase (persistence collaborator)
    # -------------------------------------------------------------------------
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_key: SecretStr | None = Field(
        default=None, description="Supabase anon or service key"
    )
    content_table: str = Field(
        default="articles",
        description="Table holding persisted content documents",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate that production settings are sane."""
        if self.app_env == "production":
            errors = []

            if not self.log_json:
                errors.append("log_json must be True in production")

            if self.enrichment_timeout_seconds > 10:
                errors.append("enrichment_timeout_seconds cannot exceed 10 in production")

            if errors:
                raise ValueError(
                    f"Production configuration errors: {'; '.join(errors)}"
                )

        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings if needed.
    """
    return Settings()
