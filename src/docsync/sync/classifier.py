"""
Change classification.

Turns a raw document from the change feed into an add, update or remove,
based on which document ids this engine has already seen.
"""

from __future__ import annotations

from collections.abc import Iterator

from docsync.core.errors import TranslationError
from docsync.core.models import ChangeKind, RemoteDocument


class KnownObjectSet:
    """Remote ids seen alive since the engine started. Memory only."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def add(self, doc_id: str) -> None:
        self._ids.add(doc_id)

    def discard(self, doc_id: str) -> None:
        self._ids.discard(doc_id)

    def clear(self) -> None:
        self._ids.clear()

    def copy(self) -> KnownObjectSet:
        clone = KnownObjectSet()
        clone._ids = set(self._ids)
        return clone

    def classify(self, doc: RemoteDocument) -> ChangeKind:
        """Classify ``doc`` and update membership to reflect its new state."""
        doc_id = doc.get("_id")
        if not doc_id:
            raise TranslationError("Cannot classify a document without _id")

        if doc.get("_deleted"):
            self.discard(doc_id)
            return ChangeKind.REMOVE
        if doc_id in self._ids:
            return ChangeKind.UPDATE
        self.add(doc_id)
        return ChangeKind.ADD


def classify(doc: RemoteDocument, known: KnownObjectSet) -> tuple[ChangeKind, KnownObjectSet]:
    """Classify ``doc`` against ``known``; returns the kind and the updated set."""
    return known.classify(doc), known
