"""Application configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    openrouter_api_key: str = Field(..., alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(..., alias="OPENROUTER_MODEL")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        alias="OPENROUTER_BASE_URL",
    )
    request_timeout_seconds: float = Field(default=300.0, alias="REQUEST_TIMEOUT_SECONDS")
    # ":memory:" keeps conversations in process only.
    database_path: str = Field(
        default=str(Path.home() / ".relaybot" / "conversations.db"),
        alias="DATABASE_PATH",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    console_user_id: str = Field(default="console", alias="CONSOLE_USER_ID")
    console_channel_id: str = Field(default="local", alias="CONSOLE_CHANNEL_ID")


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()


def uses_memory_store(settings: Settings) -> bool:
    return settings.database_path.strip() == ":memory:"
