"""
Client-side revision chains.

Writes go to the remote with ``new_edits=false``, so the client supplies the
revision itself. A stamped document carries ``_rev = "<n+1>-<new id>"`` and
``_revisions`` listing the new id followed by its ancestry, which is what the
remote expects for a non-conflicting write.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable
from typing import Any

from docsync.core.models import RemoteDocument

_REVISION_PATTERN = re.compile(r"^(\d+)-(.+)$")

REVISION_ID_LENGTH = 16


def generate_revision_id() -> str:
    """Return a fresh opaque revision id of 16 lowercase hex characters."""
    return uuid.uuid4().hex[:REVISION_ID_LENGTH]


def parse_revision(rev: Any) -> tuple[int, str | None]:
    """
    Split ``"<n>-<id>"`` into its number and id.

    Anything that does not parse counts as revision 0 with no ancestor.
    """
    if not isinstance(rev, str):
        return 0, None
    match = _REVISION_PATTERN.match(rev)
    if not match:
        return 0, None
    return int(match.group(1)), match.group(2)


def stamp(
    doc: RemoteDocument,
    id_factory: Callable[[], str] = generate_revision_id,
) -> RemoteDocument:
    """Return a copy of ``doc`` carrying the next revision in its chain."""
    number, ancestor = parse_revision(doc.get("_rev"))
    new_id = id_factory()

    ids = [new_id]
    existing = doc.get("_revisions")
    known_ids = existing.get("ids") if isinstance(existing, dict) else None
    if ancestor is not None:
        if known_ids and known_ids[0] == ancestor:
            ids.extend(known_ids)
        else:
            ids.append(ancestor)

    stamped = dict(doc)
    stamped["_rev"] = f"{number + 1}-{new_id}"
    stamped["_revisions"] = {"start": number + 1, "ids": ids}
    return stamped
