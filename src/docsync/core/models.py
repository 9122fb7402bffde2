"""
DocSync data models.

Defines the record shapes exchanged with the remote and the classified
changes produced by a pull.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

# Local records and remote documents are free-form attribute mappings.
Record = dict[str, Any]
RemoteDocument = dict[str, Any]

# Underscore attributes the remote store understands; all others stay local.
RESERVED_ATTRIBUTES = frozenset({"_id", "_rev", "_deleted", "_revisions", "_attachments"})

TIMESTAMP_ATTRIBUTES = ("createdAt", "updatedAt")


class ChangeKind(Enum):
    """Semantic kind of an observed remote change."""

    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class Change:
    """A remote document classified against the set of known ids."""

    kind: ChangeKind
    record: Record
    doc_id: str

    @property
    def type(self) -> str | None:
        return self.record.get("type")

    @property
    def id(self) -> str:
        return self.record["id"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "doc_id": self.doc_id,
            "type": self.type,
            "id": self.id,
            "record": {
                key: value.isoformat() if isinstance(value, datetime) else value
                for key, value in self.record.items()
            },
        }
