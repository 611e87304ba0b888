"""Configuration management using Pydantic Settings."""

from beartype import beartype
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with immutable configuration."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        frozen=True,  # Immutable settings
        validate_default=True,
        extra="forbid",
    )

    # API Configuration
    app_name: str = Field(
        default="Care Security Backend",
        description="Application name",
        min_length=1,
    )
    api_env: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="API environment",
    )
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    api_cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
    )

    # Access control
    access_history_capacity: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Maximum access attempts retained per user",
    )
    lockout_threshold: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Consecutive failed attempts before the account is locked",
    )
    lockout_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Account lockout duration in minutes",
    )
    threat_window_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Trailing window for counting failed attempts",
    )
    access_pattern_window_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Trailing window of successful attempts used for access patterns",
    )
    expiring_permission_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Horizon used to flag permissions as expiring",
    )

    # Policy evaluation
    enforce_policy_approval: bool = Field(
        default=False,
        description="Deny evaluation of approval-gated policies that are still pending",
    )

    @field_validator("api_cors_origins")
    @classmethod
    def validate_cors_origins(cls: type["Settings"], v: list[str]) -> list[str]:
        """Validate CORS origins are proper URLs."""
        for origin in v:
            if not origin.startswith(("http://", "https://")):
                raise ValueError(f"Invalid CORS origin: {origin}")
        return v

    @property
    @beartype
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.api_env == "production"

    @property
    @beartype
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.api_env == "development"


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
