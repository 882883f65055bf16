"""Configuration management for the Associate dashboard."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_claude_home() -> Path:
    """Return the agent tool's home directory (``~/.claude``)."""

    base = os.environ.get("USERPROFILE") or os.environ.get("HOME") or "."
    return Path(base) / ".claude"


class AssociateSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    claude_home: Path = Field(default_factory=default_claude_home, validation_alias="ASSOC_CLAUDE_HOME")
    claude_path: str | None = Field(default=None, validation_alias="ASSOC_CLAUDE_PATH")
    log_level: str = Field(default="INFO", validation_alias="ASSOC_LOG_LEVEL")
    log_file: Path | None = Field(default=None, validation_alias="ASSOC_LOG_FILE")
    tick_rate_ms: int = Field(default=250, validation_alias="ASSOC_TICK_RATE_MS")
    debounce_ms: int = Field(default=200, validation_alias="ASSOC_DEBOUNCE_MS")
    tail_lines: int = Field(default=200, validation_alias="ASSOC_TAIL_LINES")
    poll_interval: float = Field(default=60.0, validation_alias="ASSOC_POLL_INTERVAL")
    fetch_timeout: float = Field(default=30.0, validation_alias="ASSOC_FETCH_TIMEOUT")
    watch_retry: float = Field(default=5.0, validation_alias="ASSOC_WATCH_RETRY")
    linear_api_key: str | None = Field(default=None, validation_alias="LINEAR_API_KEY")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "ASSOC_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("tick_rate_ms", "debounce_ms", "tail_lines")
    @classmethod
    def _validate_positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("tick rate, debounce window and tail lines must be >= 1")
        return value

    @field_validator("poll_interval", "fetch_timeout", "watch_retry")
    @classmethod
    def _validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return value

    @property
    def resolved_log_file(self) -> Path:
        return self.log_file or self.claude_home / "associate.log"


@lru_cache(maxsize=1)
def get_settings() -> AssociateSettings:
    """Return cached settings instance."""

    settings = AssociateSettings()
    settings.claude_home = settings.claude_home.expanduser()
    if settings.log_file is not None:
        settings.log_file = settings.log_file.expanduser()
    return settings


__all__ = ["AssociateSettings", "default_claude_home", "get_settings"]
