"""
Incident Triage - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Database (unset -> in-memory storage)
    database_url: Optional[str] = None

    # Image uploads
    upload_dir: str = "uploads"

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Realtime
    broadcast_topic: str = "/topic/incidents"

    # Bootstrap
    seed_default_users: bool = True

    # Confidence scoring
    confidence_base_score: int = 30
    confidence_image_bonus: int = 20
    confidence_confirmation_bonus: int = 15
    confidence_max_confirmations: int = 3
    confidence_reputation_bonus_max: int = 20
    confidence_gps_accuracy_bonus_max: int = 15

    # Duplicate detection
    duplicate_distance_threshold_meters: float = 300.0
    duplicate_time_window_minutes: int = 10

    # Public incident codes
    incident_code_max_attempts: int = 5


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
