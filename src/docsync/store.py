"""
DocSync remote store.

Adds one-shot reads and writes against the remote database on top of the
sync engine.
"""

from __future__ import annotations

import json
from urllib.parse import quote

from docsync.core.errors import ProtocolError
from docsync.core.logging import get_logger
from docsync.core.models import Record
from docsync.sync.engine import SyncEngine
from docsync.sync.translator import doc_id_for, from_remote, to_remote

logger = get_logger(__name__)


class RemoteStore(SyncEngine):
    """Sync engine that can also list, fetch and save remote documents."""

    async def find_all(self, type: str | None = None) -> list[Record]:
        """Fetch every record, optionally restricted to one type."""
        path = "/_all_docs?include_docs=true"
        key_prefix = "/".join(part for part in (self.prefix, type) if part)
        if key_prefix:
            startkey = quote(json.dumps(f"{key_prefix}/"), safe="")
            endkey = quote(json.dumps(f"{key_prefix}0"), safe="")
            path += f"&startkey={startkey}&endkey={endkey}"

        response = await self.transport.request("GET", self._path(path))
        data = response.data
        if not isinstance(data, dict) or not isinstance(data.get("rows"), list):
            raise ProtocolError("All-docs response has no rows list")

        records: list[Record] = []
        for row in data["rows"]:
            doc = row.get("doc") if isinstance(row, dict) else None
            if not doc or str(doc.get("_id", "")).startswith("_design/"):
                continue
            records.append(from_remote(doc, self.prefix))

        logger.debug("Fetched records", name=self.name, type=type, count=len(records))
        return records

    async def find(self, type: str, id: str) -> Record:
        """Fetch one record."""
        doc_id = doc_id_for(type, id, self.prefix)
        response = await self.transport.request("GET", self._path(f"/{quote(doc_id, safe='')}"))
        if not isinstance(response.data, dict):
            raise ProtocolError(f"Document {doc_id} is not an object")
        return from_remote(response.data, self.prefix)

    async def save(self, record: Record) -> Record:
        """Create or update one record; returns it with the revision the remote assigned."""
        doc = to_remote(record, self.prefix)
        response = await self.transport.request(
            "PUT", self._path(f"/{quote(doc['_id'], safe='')}"), doc
        )

        saved = dict(record)
        data = response.data
        if isinstance(data, dict) and data.get("rev"):
            saved["_rev"] = data["rev"]
        elif not isinstance(data, dict):
            raise ProtocolError(f"Save of {doc['_id']} returned no status object")
        logger.info("Saved record", name=self.name, doc_id=doc["_id"], rev=saved.get("_rev"))
        return saved
