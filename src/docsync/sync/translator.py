"""
Translation between local records and remote documents.

Remote ids have the form ``[prefix/]type/id``. Local-only underscore
attributes never leave the process; timestamps travel as ISO 8601 strings
and come back as datetimes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from docsync.core.errors import TranslationError
from docsync.core.models import (
    RESERVED_ATTRIBUTES,
    TIMESTAMP_ATTRIBUTES,
    Record,
    RemoteDocument,
)


def doc_id_for(type: str, id: str, prefix: str | None = None) -> str:
    """Build the remote ``_id`` for a record."""
    doc_id = f"{type}/{id}"
    if prefix:
        doc_id = f"{prefix}/{doc_id}"
    return doc_id


def to_remote(record: Record, prefix: str | None = None) -> RemoteDocument:
    """Convert a local record into its wire representation."""
    if not isinstance(record, dict):
        raise TranslationError(f"Record must be a mapping, got {type(record).__name__}")

    record_type = record.get("type")
    record_id = record.get("id")
    if not record_type or not isinstance(record_type, str):
        raise TranslationError("Record is missing a type")
    if record_id is None or record_id == "":
        raise TranslationError(f"Record of type {record_type!r} is missing an id")

    doc: RemoteDocument = {}
    for key, value in record.items():
        if key == "id":
            continue
        if key.startswith("_") and key not in RESERVED_ATTRIBUTES:
            continue
        doc[key] = _serialize(value)

    doc["_id"] = doc_id_for(record_type, str(record_id), prefix)
    return doc


def from_remote(doc: RemoteDocument, prefix: str | None = None) -> Record:
    """
    Convert a remote document into a local record.

    Ids without a ``/`` after the prefix is stripped yield a record whose
    ``type`` is None and whose ``id`` is the whole remainder.
    """
    if not isinstance(doc, dict):
        raise TranslationError(f"Document must be a mapping, got {type(doc).__name__}")

    record: Record = dict(doc)
    raw_id = record.pop("_id", None)
    if raw_id is None:
        raw_id = record.get("id")
    if raw_id is None:
        raise TranslationError("Document has neither _id nor id")

    remainder = str(raw_id)
    if prefix and remainder.startswith(f"{prefix}/"):
        remainder = remainder[len(prefix) + 1 :]

    record_type, sep, record_id = remainder.partition("/")
    if sep:
        record["type"] = record_type
        record["id"] = record_id
    else:
        record["type"] = None
        record["id"] = remainder

    for key in TIMESTAMP_ATTRIBUTES:
        if key in record:
            record[key] = parse_timestamp(record[key])

    if "rev" in record:
        record["_rev"] = record.pop("rev")

    return record


def parse_timestamp(value: Any) -> Any:
    """Parse an ISO 8601 string into a datetime, leaving other values as they are."""
    if not isinstance(value, str):
        return value
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return value


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value
