"""
DocSync transport contract.

A transport turns ``request(method, path, data)`` into a PendingRequest:
an awaitable that settles exactly once and that can be aborted.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Coroutine, Generator
from dataclasses import dataclass
from typing import Any

from docsync.core.errors import RequestAborted
from docsync.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT"})

# Request options of the wire contract: JSON in, JSON out, body not form-encoded.
JSON_REQUEST_OPTIONS = {
    "contentType": "application/json",
    "dataType": "json",
    "processData": False,
}


@dataclass
class Response:
    """A settled, successful response."""

    status_code: int
    data: Any = None


class PendingRequest:
    """
    Handle for an in-flight request.

    Awaiting it yields the Response or raises the request's error. After
    ``abort()`` it raises RequestAborted instead, which lets callers tell a
    self-inflicted abort apart from cancellation of their own task.
    """

    def __init__(
        self,
        coro: Coroutine[Any, Any, Response],
        method: str = "",
        path: str = "",
    ) -> None:
        self.method = method
        self.path = path
        self.aborted = False
        self._task: asyncio.Task[Response] = asyncio.ensure_future(coro)

    def abort(self) -> bool:
        """Abort the request. Returns False if it had already settled."""
        if self._task.done():
            return False
        self.aborted = True
        self._task.cancel()
        logger.debug("Request aborted", method=self.method, path=self.path)
        return True

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> None:
        """Wait until the request settles, without raising its outcome."""
        await asyncio.wait({self._task})

    async def result(self) -> Response:
        try:
            return await self._task
        except asyncio.CancelledError:
            if self.aborted and self._task.cancelled():
                raise RequestAborted(f"{self.method} {self.path} aborted") from None
            raise

    def __await__(self) -> Generator[Any, None, Response]:
        return self.result().__await__()


class Transport(ABC):
    """Base class for everything that can carry requests to the remote."""

    def request(self, method: str, path: str, data: Any = None) -> PendingRequest:
        """Start a request. Must be called with a running event loop."""
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported request method: {method}")
        return PendingRequest(self.send(method, path, data), method=method, path=path)

    @abstractmethod
    async def send(self, method: str, path: str, data: Any = None) -> Response:
        """
        Perform one request.

        Implementations raise a TransportError subclass for failures and
        ProtocolError for bodies that are not JSON.
        """

    async def aclose(self) -> None:
        """Release any resources held by the transport."""
