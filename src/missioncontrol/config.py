"""Mission Control configuration.

Created: 2026-02-05

Settings are read from environment variables prefixed with
``MISSIONCONTROL_`` (and an optional ``.env`` file), e.g.::

    MISSIONCONTROL_DATA_DIR=/srv/missioncontrol
    MISSIONCONTROL_POLL_INTERVAL_MS=5000
    MISSIONCONTROL_SINK=http
    MISSIONCONTROL_SINK_URL=http://localhost:18789/sessions/send
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mission Control settings."""

    model_config = SettingsConfigDict(
        env_prefix="MISSIONCONTROL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(
        default=Path.home() / ".missioncontrol",
        description="Root directory for Mission Control data",
    )

    # Delivery daemon
    poll_interval_ms: int = Field(default=2000, description="Delay between poll cycles")

    # Delivery sink
    sink: Literal["cli", "http"] = Field(default="cli", description="Session sink backend")
    sink_command: str = Field(default="openclaw", description="Executable used by the CLI sink")
    sink_url: str = Field(default="", description="Endpoint used by the HTTP sink")
    sink_token: str | None = Field(default=None, description="Bearer token for the HTTP sink")
    sink_timeout: float = Field(default=30.0, description="Seconds allowed per send")

    # Standup
    standup_session_key: str = Field(
        default="agent:main:main", description="Session that receives the daily standup"
    )

    # Logging
    log_level: str = Field(default="INFO")

    # API server
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000)

    @field_validator("poll_interval_ms")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("poll_interval_ms must be positive")
        return value

    @field_validator("sink_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("sink_timeout must be positive")
        return value

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000

    @property
    def store_dir(self) -> Path:
        """Directory holding the JSON store files."""
        return self.data_dir / "store"


@lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance."""
    return Settings()


def get_config_dir() -> Path:
    """Get (and create) the Mission Control data directory."""
    config_dir = get_settings().data_dir
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir
