"""Configuration management for turnkit."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TURNKIT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Identity
    bot_app_id: str | None = Field(default=None, description="Application id used for proactive messages")

    # Turn lifecycle
    remove_recipient_mention: bool = Field(default=True, description="Strip @mentions of the bot from message text")
    start_typing_timer: bool = Field(default=True, description="Send typing activities while a message is handled")
    typing_timer_delay: float = Field(default=1.0, gt=0, description="Seconds between typing activities")
    long_running_messages: bool = Field(default=False, description="Run message turns as proactive continuations")
    task_data_filter: str = Field(default="verb", description="Invoke payload field used to match task verbs")

    # AI loop
    ai_max_steps: int = Field(default=5, ge=1, description="Maximum planning rounds per input")
    max_history_entries: int = Field(default=10, ge=0, description="Conversation history entries kept in state")

    # Storage
    storage_path: Path | None = Field(default=None, description="Directory for JSON file storage")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


def load_settings(**overrides: Any) -> Settings:
    """Load settings from env/.env and apply explicit overrides."""

    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
