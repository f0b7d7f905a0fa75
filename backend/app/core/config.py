"""
Forum Realtime Backend Configuration.

Environment-based configuration using Pydantic Settings.
All sensitive values should be set via environment variables.
"""

from functools import lru_cache

from pydantic import field_validator
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
    app_name: str = "Community Forum Realtime"
    app_version: str = "1.0.0"
    debug: bool = False

    # API
    api_v1_prefix: str = "/api/v1"

    # JWT Authentication (tokens are issued by the auth service)
    jwt_secret_key: str = "CHANGE-ME-JWT-SECRET-IN-PRODUCTION-PLEASE"
    jwt_algorithm: str = "HS256"

    # Realtime
    realtime_presence_timeout: float = 60.0  # seconds without heartbeat
    realtime_presence_sweep_interval: float = 30.0
    realtime_typing_timeout: float = 5.0
    realtime_keepalive_interval: float = 30.0
    realtime_history_size: int = 100  # recent events kept per channel
    realtime_history_channels: int = 1000  # channels with retained history, 0 = unbounded
    realtime_global_fanout: bool = True
    realtime_stream_queue_size: int = 0  # 0 = unbounded

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    @field_validator(
        "realtime_presence_timeout",
        "realtime_presence_sweep_interval",
        "realtime_typing_timeout",
        "realtime_keepalive_interval",
    )
    @classmethod
    def validate_positive_interval(cls, v: float) -> float:
        """Timer intervals must be strictly positive."""
        if v <= 0:
            raise ValueError("interval must be greater than zero")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
