"""
DocSync transport module.

Carries requests to the remote database and hands back cancellable handles.
"""

from docsync.transport.base import PendingRequest, Response, Transport
from docsync.transport.http import HttpxTransport

__all__ = ["PendingRequest", "Response", "Transport", "HttpxTransport"]
