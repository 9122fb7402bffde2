"""
Pytest configuration and fixtures for DocSync tests.
"""

import asyncio
import copy
import sys
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docsync.core.errors import TransportError, error_for_status  # noqa: E402
from docsync.transport.base import ALLOWED_METHODS, PendingRequest, Response, Transport  # noqa: E402


@dataclass
class FakeCall:
    """One request seen by FakeTransport, answered by the test."""

    method: str
    path: str
    data: Any
    future: asyncio.Future = field(repr=False)

    def respond(self, data: Any = None, status: int = 200) -> None:
        if not self.future.done():
            self.future.set_result(Response(status, data))

    def fail(self, status: int | None = None, message: str = "") -> None:
        if status is None:
            error: Exception = TransportError(message or "connection reset")
        else:
            error = error_for_status(status, message)
        if not self.future.done():
            self.future.set_exception(error)

    @property
    def aborted(self) -> bool:
        return self.future.cancelled()


class FakeTransport(Transport):
    """In-memory transport whose requests stay pending until answered."""

    def __init__(self, auto: Callable[[FakeCall], None] | None = None) -> None:
        self.calls: list[FakeCall] = []
        self.auto = auto
        self.closed = False

    def request(self, method: str, path: str, data: Any = None) -> PendingRequest:
        method = method.upper()
        assert method in ALLOWED_METHODS
        call = FakeCall(method, path, copy.deepcopy(data), asyncio.get_running_loop().create_future())
        self.calls.append(call)
        if self.auto is not None:
            self.auto(call)
        return PendingRequest(self._wait(call), method=method, path=path)

    async def _wait(self, call: FakeCall) -> Response:
        return await call.future

    async def send(self, method: str, path: str, data: Any = None) -> Response:
        return await self.request(method, path, data)

    async def aclose(self) -> None:
        self.closed = True

    @property
    def last(self) -> FakeCall:
        return self.calls[-1]


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def settle() -> Callable[[], Awaitable[None]]:
    """Let pending callbacks and background tasks run."""

    async def _settle() -> None:
        for _ in range(25):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config(temp_dir: Path) -> "DocSyncConfig":
    """Create a sample configuration for testing."""
    from docsync.core.config import DocSyncConfig, LoggingConfig, RemoteConfig

    return DocSyncConfig(
        logging=LoggingConfig(log_directory=temp_dir / "logs", console_enabled=False),
        remote=RemoteConfig(base_url="http://couch.test:5984", prefix="$public"),
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
