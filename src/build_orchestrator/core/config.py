"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "GitLab Build Orchestrator"
    app_version: str = "0.1.0"

    # GitLab Integration
    gitlab_base_url: str = Field(default="https://gitlab.com")
    gitlab_api_token: str = Field(default="")
    gitlab_api_timeout: int = Field(default=30)

    # Pipeline monitoring
    pipeline_poll_interval: float = Field(default=10.0)
    pipeline_max_attempts: int = Field(default=120)  # ~20 minutes at 10s
    pipeline_environment_variable: str = Field(default="ENV")

    # Concurrent builds
    build_pool_workers: int = Field(default=16)
    build_queue_capacity: int = Field(default=2000)

    # Git
    git_remote: str = Field(default="origin")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # json or console
    log_file: Optional[str] = Field(default=None)

    @field_validator("gitlab_base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Strip trailing slashes from the GitLab URL."""
        return v.rstrip("/")

    @field_validator(
        "gitlab_api_timeout",
        "pipeline_max_attempts",
        "build_pool_workers",
        "build_queue_capacity",
    )
    @classmethod
    def validate_positive(cls, v):
        """Tuning values must be positive."""
        if v <= 0:
            raise ValueError("Value must be greater than zero")
        return v

    @field_validator("pipeline_poll_interval")
    @classmethod
    def validate_poll_interval(cls, v):
        """Poll interval may be zero (tests) but not negative."""
        if v < 0:
            raise ValueError("Poll interval must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()


# Global settings instance
settings = get_settings()
