"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_uri: str
    database_name: str = "inbox_core"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True
    environment: str = "production"

    # Campaign state synchronization
    state_sync_enabled: bool = True
    state_sync_interval_seconds: float = 30.0
    stale_lock_minutes: int = 10
    state_sync_auto_correct: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    # Error tracking
    sentry_dsn: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
