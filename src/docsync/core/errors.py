"""
DocSync error taxonomy.

Transport failures carry the HTTP status code they were classified from so
the sync engine can pick a recovery strategy.
"""

from __future__ import annotations

from typing import Any


class DocSyncError(Exception):
    """Base class for all DocSync errors."""


class TranslationError(DocSyncError):
    """A record cannot be translated to or from its remote shape."""


class ProtocolError(DocSyncError):
    """The remote answered with a response of unexpected shape."""


class TransportError(DocSyncError):
    """A request failed on the network or with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class AuthError(TransportError):
    """The remote rejected the session (401)."""


class NotFoundError(TransportError):
    """The requested database or document does not exist (404)."""


class ServerError(TransportError):
    """The remote failed internally (5xx)."""


class RequestAborted(TransportError):
    """The request was aborted before it settled."""

    def __init__(self, message: str = "Request aborted") -> None:
        super().__init__(message, status_code=None)


class DeliveryError(DocSyncError):
    """One or more event handlers failed while consuming an event."""

    def __init__(self, key: object, errors: list[Exception]) -> None:
        super().__init__(
            f"{len(errors)} handler(s) failed for {key}: "
            + "; ".join(f"{type(e).__name__}: {e}" for e in errors)
        )
        self.key = key
        self.errors = errors


def error_for_status(status_code: int, message: str = "", payload: Any = None) -> TransportError:
    """Build the transport error matching an HTTP status code."""
    text = message or f"HTTP {status_code}"
    if status_code == 401:
        return AuthError(text, status_code, payload)
    if status_code == 404:
        return NotFoundError(text, status_code, payload)
    if 500 <= status_code < 600:
        return ServerError(text, status_code, payload)
    return TransportError(text, status_code, payload)
