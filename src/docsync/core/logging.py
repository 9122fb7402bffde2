"""
DocSync structured logging.

structlog on top of the standard logging module. Pulls, pushes and retries
are logged with the remote they concern: inside a ``SyncStepLogger`` block
the remote name and step are bound to every log line, including lines from
the engine and the transport.
"""

from __future__ import annotations

import logging
import re
import sys
import time
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from docsync.core.config import LoggingConfig


_configured = False


def log_file_path(config: LoggingConfig, remote: str | None = None, day: date | None = None) -> Path:
    """Daily log file for one remote, e.g. ``docsync-tasks-20260101.log``."""
    label = re.sub(r"[^A-Za-z0-9._-]+", "_", remote) if remote else "default"
    stamp = (day or date.today()).strftime("%Y%m%d")
    return config.log_directory / f"docsync-{label}-{stamp}.log"


def setup_logging(config: LoggingConfig, remote: str | None = None) -> None:
    """Configure logging once per process."""
    global _configured

    if _configured:
        return

    handlers: list[logging.Handler] = []

    if config.console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, config.level))
        handlers.append(console_handler)

    if config.file_enabled:
        config.log_directory.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path(config, remote), encoding="utf-8")
        # Files keep the long-poll and retry chatter that the console hides.
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, format="%(message)s")
    # Request lines from httpx duplicate the transport's own debug events.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if config.json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or "docsync")


class SyncStepLogger:
    """
    Logs one pull or push against a remote.

    Binds ``remote`` and ``step`` for everything logged inside the block,
    then logs how it ended along with whatever ``record()`` collected
    (change counts, the new cursor).
    """

    def __init__(
        self,
        step: str,
        remote: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
        **context: Any,
    ):
        self.step = step
        self.remote = remote
        self.logger = logger or get_logger()
        self.context = context
        self.outcome: dict[str, Any] = {}
        self._started: float | None = None
        self._tokens: Any = None

    def __enter__(self) -> SyncStepLogger:
        self._tokens = structlog.contextvars.bind_contextvars(
            remote=self.remote or "default", step=self.step
        )
        self._started = time.monotonic()
        self.logger.info(f"{self.step.capitalize()} started", **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        elapsed = round(time.monotonic() - self._started, 3) if self._started is not None else 0.0
        try:
            if exc_type is None:
                self.logger.info(
                    f"{self.step.capitalize()} finished",
                    duration_seconds=elapsed,
                    **{**self.context, **self.outcome},
                )
            else:
                self.logger.error(
                    f"{self.step.capitalize()} failed",
                    duration_seconds=elapsed,
                    error_type=exc_type.__name__,
                    error=str(exc_val),
                    status_code=getattr(exc_val, "status_code", None),
                    **self.context,
                )
        finally:
            structlog.contextvars.reset_contextvars(**self._tokens)

    def record(self, **outcome: Any) -> None:
        """Attach results to the closing log line."""
        self.outcome.update(outcome)
