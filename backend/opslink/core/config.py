"""Application configuration and settings management."""
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=(Path(__file__).resolve().parent.parent / ".." / ".env"),
        env_file_encoding="utf-8",
        env_prefix="OPSLINK_",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = "OpsLink"
    secret_key: str = "change-me"
    encryption_key: str | None = None
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./opslink.db"

    # Sessions and single-use tokens
    access_token_expire_days: int = 7
    verification_token_ttl_hours: int = 24
    reset_token_ttl_minutes: int = 60
    pairing_token_ttl_seconds: int = 300
    oauth_state_ttl_seconds: int = 600

    allowed_origins: List[str] | str = [
        "https://servers.opslinksystems.xyz",
        "http://localhost:3000",
    ]
    frontend_url: str = "https://servers.opslinksystems.xyz"

    # Outbound delivery
    discord_webhook_url: str | None = None
    resend_api_key: str | None = None
    email_from: str = "no-reply@opslinksystems.xyz"

    # Trusted bot callers (member counts, analytics snapshots)
    bot_api_key: str | None = None

    # Moderation
    delete_requires_management: bool = True

    # OAuth providers
    twitch_client_id: str | None = None
    twitch_client_secret: str | None = None
    spotify_client_id: str | None = None
    spotify_client_secret: str | None = None
    youtube_client_id: str | None = None
    youtube_client_secret: str | None = None
    github_client_id: str | None = None
    github_client_secret: str | None = None
    api_base_url: str = "http://localhost:5000/api"


    # Scheduler
    token_purge_interval_seconds: int = 3600
    pairing_sweep_interval_seconds: int = 60

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: List[str] | str) -> List[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return memoized settings instance."""

    return Settings()


settings = get_settings()
