"""
Configuration and settings for the Touchline backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TOUCHLINE_",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Queue and change feed (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="touchline:roster-analytics")
    redis_channel_prefix: str = Field(default="touchline:changes")

    # Comma separated user ids allowed to author help content
    admin_user_ids: str = Field(default="")

    # Roster and help behaviour
    max_roster_size: int = Field(default=50, ge=1)
    search_result_limit: int = Field(default=20, ge=1)
    recommendation_limit: int = Field(default=5, ge=1)
    analytics_window_days: int = Field(default=30, ge=1)

    @property
    def admin_ids(self) -> set[str]:
        return {uid.strip() for uid in self.admin_user_ids.split(",") if uid.strip()}

    def is_admin(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and user_id in self.admin_ids


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
