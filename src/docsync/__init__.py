"""
DocSync - Bidirectional sync between a local object store and a remote
document database.

Replicates typed records over HTTP using a long-poll change feed for inbound
updates and bulk writes with client-generated revisions for outbound ones.
"""

__version__ = "1.0.0"
__author__ = "DocSync Team"

from docsync.core.config import DocSyncConfig
from docsync.store import RemoteStore
from docsync.sync.engine import SyncEngine

__all__ = ["DocSyncConfig", "RemoteStore", "SyncEngine", "__version__"]
