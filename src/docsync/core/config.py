"""
DocSync configuration management.

Provides centralized configuration with validation using Pydantic.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class SyncMode(Enum):
    """How an engine keeps itself in step with the remote."""

    OFF = "off"
    SYNC = "sync"
    PULL_ONLY = "pull-only"
    PUSH_ONLY = "push-only"

    @property
    def pulls_continuously(self) -> bool:
        return self in (SyncMode.SYNC, SyncMode.PULL_ONLY)

    @property
    def pushes_continuously(self) -> bool:
        return self in (SyncMode.SYNC, SyncMode.PUSH_ONLY)


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_enabled: bool = False
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: Path.home() / ".docsync" / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class SyncDirections(BaseModel):
    """Per-direction continuous sync switches."""

    pull: bool = False
    push: bool = False


class RemoteConfig(BaseModel):
    """Configuration for one remote database connection."""

    name: str | None = None
    prefix: str | None = None
    sync: bool | SyncDirections = False
    base_url: str = "http://127.0.0.1:5984"
    auth_token: str | None = None
    request_timeout_seconds: float = Field(default=60.0, gt=10.0)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def doc_prefix(self) -> str | None:
        """Prefix applied to remote document ids."""
        if self.prefix is not None:
            return self.prefix or None
        return self.name

    @property
    def mode(self) -> SyncMode:
        if self.sync is True:
            return SyncMode.SYNC
        if isinstance(self.sync, SyncDirections):
            if self.sync.pull and self.sync.push:
                return SyncMode.SYNC
            if self.sync.pull:
                return SyncMode.PULL_ONLY
            if self.sync.push:
                return SyncMode.PUSH_ONLY
        return SyncMode.OFF


class DocSyncConfig(BaseModel):
    """Main DocSync configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> DocSyncConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = Path.home() / ".docsync" / "config.json"

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = Path.home() / ".docsync" / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all required directories."""
        if self.logging.file_enabled:
            self.logging.log_directory.mkdir(parents=True, exist_ok=True)


def get_default_config() -> DocSyncConfig:
    """Get the default configuration."""
    return DocSyncConfig()


def load_config(config_path: Path | None = None) -> DocSyncConfig:
    """Load or create configuration."""
    config = DocSyncConfig.load(config_path)
    config.ensure_directories()
    return config
