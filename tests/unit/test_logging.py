"""
Tests for docsync.core.logging module.
"""

from datetime import date
from pathlib import Path

import pytest
import structlog
from structlog.testing import capture_logs

from docsync.core.config import LoggingConfig
from docsync.core.errors import ServerError
from docsync.core.logging import SyncStepLogger, log_file_path


class TestLogFilePath:
    """Tests for per-remote log file naming."""

    def test_named_remote(self, temp_dir: Path) -> None:
        config = LoggingConfig(log_directory=temp_dir)
        path = log_file_path(config, "tasks", day=date(2026, 1, 2))
        assert path == temp_dir.resolve() / "docsync-tasks-20260102.log"

    def test_unsafe_characters_replaced(self, temp_dir: Path) -> None:
        config = LoggingConfig(log_directory=temp_dir)
        path = log_file_path(config, "user/7 shared", day=date(2026, 1, 2))
        assert path.name == "docsync-user_7_shared-20260102.log"

    def test_default_remote(self, temp_dir: Path) -> None:
        config = LoggingConfig(log_directory=temp_dir)
        assert log_file_path(config, day=date(2026, 1, 2)).name == "docsync-default-20260102.log"


class TestSyncStepLogger:
    """Tests for SyncStepLogger."""

    def test_binds_remote_inside_block(self) -> None:
        with SyncStepLogger("pull", "tasks", structlog.get_logger("test")):
            bound = structlog.contextvars.get_contextvars()
            assert bound["remote"] == "tasks"
            assert bound["step"] == "pull"
        assert "remote" not in structlog.contextvars.get_contextvars()

    def test_logs_recorded_outcome(self) -> None:
        with capture_logs() as logs:
            with SyncStepLogger("pull", "tasks", structlog.get_logger("test"), since=0) as step:
                step.record(changes=2, since=7)

        assert [entry["event"] for entry in logs] == ["Pull started", "Pull finished"]
        assert logs[0]["since"] == 0
        assert logs[1]["since"] == 7
        assert logs[1]["changes"] == 2
        assert logs[1]["duration_seconds"] >= 0

    def test_logs_failure_and_reraises(self) -> None:
        with capture_logs() as logs:
            with pytest.raises(ServerError):
                with SyncStepLogger("push", "tasks", structlog.get_logger("test"), count=1):
                    raise ServerError("boom", status_code=503)

        failed = logs[-1]
        assert failed["event"] == "Push failed"
        assert failed["log_level"] == "error"
        assert failed["error_type"] == "ServerError"
        assert failed["status_code"] == 503
        assert "remote" not in structlog.contextvars.get_contextvars()
