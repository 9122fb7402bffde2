"""
DocSync Core - shared building blocks.

Contains configuration, logging, the error taxonomy, data models and the
event bus used by the sync engine.
"""

from docsync.core.config import DocSyncConfig, RemoteConfig, SyncDirections, SyncMode
from docsync.core.events import EventBus, EventKey
from docsync.core.logging import get_logger, setup_logging
from docsync.core.models import Change, ChangeKind

__all__ = [
    "DocSyncConfig",
    "RemoteConfig",
    "SyncDirections",
    "SyncMode",
    "EventBus",
    "EventKey",
    "get_logger",
    "setup_logging",
    "Change",
    "ChangeKind",
]
