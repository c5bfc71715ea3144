"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. This ensures:
1. Type validation at startup
2. Centralized configuration
3. Documentation of available settings
4. Proper defaults
"""

from enum import Enum
from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromotionFailurePolicy(str, Enum):
    """What happens to a freshly created ticket when its inventory action fails."""

    ROLLBACK = "rollback"  # Discard ticket, schedule link and inventory change
    PENDING_APPLY = "pending_apply"  # Keep ticket flagged for a later apply retry


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to relative path for Docker, override via env for local dev
    database_url: str = "sqlite:///./data/opsconsole.db"

    # Security (token decoding only, tokens are issued by the auth service)
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # Timezone used to decide what "today" is for schedules
    timezone: str = "Asia/Kuala_Lumpur"

    # ==========================================================================
    # Scheduled maintenance
    # ==========================================================================
    maintenance_upcoming_days: int = 30
    maintenance_reminder_window_days: int = 14
    maintenance_reminder_thresholds: List[int] = [14, 7, 1]
    maintenance_reminders_enabled: bool = False
    maintenance_reminder_interval_seconds: int = 86400  # once a day
    promotion_failure_policy: PromotionFailurePolicy = PromotionFailurePolicy.ROLLBACK

    @field_validator("maintenance_reminder_thresholds")
    @classmethod
    def validate_reminder_thresholds(cls, v: List[int]) -> List[int]:
        if any(days not in (14, 7, 1) for days in v):
            raise ValueError("Reminder thresholds must be a subset of 14, 7 and 1 days")
        return sorted(set(v), reverse=True)

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        if not self.debug:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )
        if self.maintenance_reminder_window_days < max(self.maintenance_reminder_thresholds, default=0):
            raise ValueError(
                "MAINTENANCE_REMINDER_WINDOW_DAYS must cover the largest reminder threshold"
            )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list, filtering localhost in production."""
        if self.cors_origins == "*":
            return ["*"]

        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        if not self.debug:
            localhost_patterns = ["localhost", "127.0.0.1", "0.0.0.0"]
            origins = [o for o in origins if not any(p in o for p in localhost_patterns)]

        return origins


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
