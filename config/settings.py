"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables (FRESHSYNC_ prefix)
    or a local .env file. All durations are in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="FRESHSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache store
    cache_max_entries: int = 100
    cache_ttl_seconds: float = 300.0       # 5 minutes
    cache_stale_seconds: float = 150.0     # 2.5 minutes
    cache_cleanup_interval: float = 60.0

    # Retry policy
    retry_attempts: int = 3
    retry_delay_seconds: float = 1.0

    # Request coalescing
    throttle_window_seconds: float = 1.0
    max_concurrent_requests: int = 10

    # Background refresh, 0 disables interval polling by default
    refetch_interval_seconds: float = 0.0

    # HTTP fetcher adapter
    http_timeout_seconds: float = 60.0


settings = Settings()
