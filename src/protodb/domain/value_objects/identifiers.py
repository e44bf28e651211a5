"""Document identifiers and timestamps.

Documents carry a string ``id`` and two ISO-8601 timestamps. Timestamps are
always rendered in UTC with millisecond precision and a ``Z`` suffix, so they
sort lexicographically in chronological order.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, NewType


DocumentId = NewType("DocumentId", str)
"""Identifier of a document, unique within its collection."""

ID_FIELD = "id"
CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"

# Length of the random part of generated ids
ID_RANDOM_LENGTH = 12

Document = dict[str, Any]
"""A stored document: field name to JSON-compatible value."""


def generate_id(prefix: str) -> DocumentId:
    """Generate a new document id of the form ``<prefix>_<12 hex chars>``.

    Example:
        >>> generate_id("usr").startswith("usr_")
        True
    """
    return DocumentId(f"{prefix}_{uuid.uuid4().hex[:ID_RANDOM_LENGTH]}")


def to_iso(value: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC string (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string."""
    return to_iso(datetime.now(timezone.utc))


def parse_date(value: str) -> datetime | date | None:
    """Parse an ISO-8601 date or datetime string, returning None when invalid."""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
