"""Application configuration for the meeting invitation service."""
from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    frontend_base_url: str = Field(default="http://localhost:3000")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    meeting_ttl_minutes: int = Field(default=30, ge=1)
    token_length: int = Field(default=8, ge=4)
    token_max_attempts: int = Field(default=16, ge=1)

    meeting_store: str = Field(default="memory", pattern="^(memory|database)$")
    database_url: str = Field(default="sqlite+aiosqlite:///./meetings.db")

    sweep_interval_seconds: int = Field(default=300, ge=0)
    meeting_retention_minutes: int = Field(default=24 * 60, ge=0)

    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_use_tls: bool = Field(default=True)
    mail_from: str = Field(default="")

    signaling_room_capacity: int = Field(default=2, ge=1)
    signaling_require_shared_room: bool = Field(default=False)
    signaling_notify_peer_left: bool = Field(default=False)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        """Allow comma-separated env values for CORS origins."""

        if isinstance(value, str):
            if value.strip().startswith("["):
                return json.loads(value)
            parts = [item.strip() for item in value.split(",") if item.strip()]
            return parts
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
