"""Application settings using Pydantic BaseSettings."""

import os
from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from loginguard.security.rate_limiter import RateLimitConfig
    from loginguard.security.session_timer import SessionTimerConfig


def _get_default_db_path() -> str:
    """Get absolute path to default SQLite database."""
    # backend/loginguard/config/ -> backend/
    config_dir = os.path.dirname(os.path.abspath(__file__))
    backend_dir = os.path.dirname(os.path.dirname(config_dir))
    db_path = os.path.join(backend_dir, "data", "loginguard.db")
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Runtime
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)

    # Database
    database_url: str = Field(default_factory=_get_default_db_path)

    # Rate limiter (per hashed identifier)
    rate_limit_max_attempts: int = Field(default=5, ge=1)
    rate_limit_window_seconds: float = Field(default=15 * 60, gt=0)
    rate_limit_escalation_threshold: int = Field(default=10, ge=1)
    rate_limit_escalation_window_seconds: float = Field(default=60 * 60, gt=0)
    rate_limit_cas_retries: int = Field(default=5, ge=1)

    # Idle session timer
    session_timeout_minutes: float = Field(default=30, gt=0)
    session_warning_minutes: float = Field(default=5, ge=0)
    session_activity_throttle_seconds: float = Field(default=2.0, ge=0)

    # Security monitor
    monitor_brute_force_lookback: int = Field(default=5, ge=1)
    monitor_brute_force_threshold: int = Field(default=3, ge=1)
    monitor_location_history: int = Field(default=2, ge=1)
    monitor_enable_device_fingerprinting: bool = Field(default=True)
    monitor_enable_geo_tracking: bool = Field(default=True)

    # Best-effort public IP lookup
    ip_lookup_url: str = Field(default="https://api.ipify.org?format=json")
    ip_lookup_timeout_seconds: float = Field(default=5.0, gt=0)

    # Default administrator (approved profile auto-created on first login)
    bootstrap_admin_email: str = Field(default="")
    bootstrap_admin_password: str = Field(default="")

    # Dashboard access (empty disables the dashboard routes)
    admin_api_token: str = Field(default="")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def rate_limit_config(self) -> "RateLimitConfig":
        from loginguard.security.rate_limiter import RateLimitConfig

        return RateLimitConfig(
            max_attempts=self.rate_limit_max_attempts,
            window_seconds=self.rate_limit_window_seconds,
            escalation_threshold=self.rate_limit_escalation_threshold,
            escalation_window_seconds=self.rate_limit_escalation_window_seconds,
            cas_retries=self.rate_limit_cas_retries,
        )

    def session_timer_config(self) -> "SessionTimerConfig":
        from loginguard.security.session_timer import SessionTimerConfig

        return SessionTimerConfig(
            timeout_minutes=self.session_timeout_minutes,
            warning_minutes=self.session_warning_minutes,
            throttle_seconds=self.session_activity_throttle_seconds,
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production"}:
            raise ValueError("ENVIRONMENT must be one of: development, staging, production")
        return vv

    @field_validator("bootstrap_admin_email")
    @classmethod
    def normalize_bootstrap_email(cls, v: str) -> str:
        return (v or "").strip().lower()

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        if self.rate_limit_escalation_window_seconds < self.rate_limit_window_seconds:
            raise ValueError(
                "RATE_LIMIT_ESCALATION_WINDOW_SECONDS must be >= RATE_LIMIT_WINDOW_SECONDS"
            )
        if self.rate_limit_escalation_threshold < self.rate_limit_max_attempts:
            raise ValueError(
                "RATE_LIMIT_ESCALATION_THRESHOLD must be >= RATE_LIMIT_MAX_ATTEMPTS"
            )
        # Outside production the timer falls back to its own warning floor.
        if self.is_production and self.session_warning_minutes >= self.session_timeout_minutes:
            raise ValueError("SESSION_WARNING_MINUTES must be < SESSION_TIMEOUT_MINUTES")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
