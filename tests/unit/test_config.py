"""
Tests for docsync.core.config module.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from docsync.core.config import (
    DocSyncConfig,
    LoggingConfig,
    RemoteConfig,
    SyncDirections,
    SyncMode,
    load_config,
)


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.file_enabled is False
        assert config.console_enabled is True
        assert config.json_format is False

    def test_custom_values(self) -> None:
        config = LoggingConfig(level="DEBUG", json_format=True)
        assert config.level == "DEBUG"
        assert config.json_format is True

    def test_path_expansion(self) -> None:
        config = LoggingConfig(log_directory="~/logs")
        assert "~" not in str(config.log_directory)


class TestRemoteConfig:
    """Tests for RemoteConfig."""

    def test_default_values(self) -> None:
        config = RemoteConfig()
        assert config.name is None
        assert config.doc_prefix is None
        assert config.mode is SyncMode.OFF
        assert config.base_url == "http://127.0.0.1:5984"

    def test_prefix_defaults_to_name(self) -> None:
        assert RemoteConfig(name="user/1").doc_prefix == "user/1"

    def test_prefix_overrides_name(self) -> None:
        assert RemoteConfig(name="user/1", prefix="$public").doc_prefix == "$public"

    def test_empty_prefix_disables_prefix(self) -> None:
        assert RemoteConfig(name="user/1", prefix="").doc_prefix is None

    @pytest.mark.parametrize(
        ("sync", "mode"),
        [
            (True, SyncMode.SYNC),
            (False, SyncMode.OFF),
            ({"pull": True, "push": True}, SyncMode.SYNC),
            ({"pull": True}, SyncMode.PULL_ONLY),
            ({"push": True}, SyncMode.PUSH_ONLY),
            ({}, SyncMode.OFF),
        ],
    )
    def test_sync_mode(self, sync: object, mode: SyncMode) -> None:
        config = RemoteConfig(sync=sync)
        assert config.mode is mode

    def test_continuous_directions(self) -> None:
        config = RemoteConfig(sync=SyncDirections(pull=True))
        assert config.mode.pulls_continuously is True
        assert config.mode.pushes_continuously is False

    def test_trailing_slash_removed(self) -> None:
        assert RemoteConfig(base_url="http://couch:5984/").base_url == "http://couch:5984"

    def test_timeout_must_exceed_heartbeat(self) -> None:
        with pytest.raises(ValidationError):
            RemoteConfig(request_timeout_seconds=5)


class TestDocSyncConfig:
    """Tests for DocSyncConfig."""

    def test_save_and_load(self, temp_dir: Path) -> None:
        path = temp_dir / "config.json"
        config = DocSyncConfig(remote=RemoteConfig(name="tasks", sync={"pull": True}))
        config.save(path)

        loaded = DocSyncConfig.load(path)
        assert loaded.remote.name == "tasks"
        assert loaded.remote.mode is SyncMode.PULL_ONLY

    def test_load_missing_file_gives_defaults(self, temp_dir: Path) -> None:
        config = DocSyncConfig.load(temp_dir / "missing.json")
        assert config.remote.mode is SyncMode.OFF

    def test_load_config_creates_log_directory(self, temp_dir: Path) -> None:
        path = temp_dir / "config.json"
        DocSyncConfig(
            logging=LoggingConfig(file_enabled=True, log_directory=temp_dir / "logs"),
        ).save(path)

        load_config(path)
        assert (temp_dir / "logs").is_dir()
