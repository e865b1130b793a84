"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Cache settings
    cache_default_ttl_seconds: float = 600.0
    cache_max_entries: Optional[int] = 200

    # Background prefetch: pause between consecutive tasks
    prefetch_delay_seconds: float = 1.0

    # Change feed (push channel); polling is disabled without a URL
    change_feed_url: Optional[str] = None
    change_feed_poll_seconds: float = 5.0
    change_feed_timeout_seconds: float = 10.0
    change_feed_max_attempts: int = 3

    # Preference storage (separate from the in-memory data cache)
    preferences_database_url: str = "sqlite:///./marketsync_prefs.db"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
