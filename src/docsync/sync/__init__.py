"""
DocSync sync module.

Provides the pull/push/sync engine together with document translation,
revision stamping and change classification.
"""

from docsync.sync.classifier import KnownObjectSet, classify
from docsync.sync.engine import SyncEngine
from docsync.sync.revisions import stamp
from docsync.sync.translator import from_remote, to_remote

__all__ = ["KnownObjectSet", "classify", "SyncEngine", "stamp", "from_remote", "to_remote"]
