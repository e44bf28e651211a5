"""In-memory field indexes.

The indexer owns one structure per (collection, field): a map from field
value to the set of ids of the documents currently holding it. Only ids are
stored, never document references, so the document lists can be rebuilt or
replaced without touching the indexes.

Indexes are not persisted. They are rebuilt from the full document set when
a collection is initialized, at O(n) cost per indexed field.

Write-path contract:
    - on_insert / on_update check every unique constraint first and only
      then mutate, so a rejected write leaves all indexes untouched.
    - on_delete removes the id from each indexed value and prunes empty sets.

None and missing values are never indexed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping

from protodb.domain.errors import UniqueConstraintError
from protodb.domain.value_objects import ID_FIELD, Document
from protodb.infrastructure.logging import get_logger
from protodb.infrastructure.metrics import MetricsRegistry, get_metrics

logger = get_logger(__name__, component="indexer")


def index_key(value: Any) -> Hashable:
    """Hashable key for a field value that keeps type families apart.

    ``True`` and ``1`` hash alike in Python, so the family is part of the
    key. Lists and dicts are keyed recursively from their members, so two
    containers share a key exactly when they compare equal field by field
    (``{"n": 1}`` and ``{"n": 1.0}`` collide, key order does not matter).
    """
    if isinstance(value, bool):
        return ("boolean", value)
    if isinstance(value, (int, float)):
        return ("number", value)
    if isinstance(value, str):
        return ("string", value)
    if isinstance(value, (list, tuple)):
        return ("array", tuple(index_key(item) for item in value))
    if isinstance(value, dict):
        return ("object", tuple(sorted((str(k), index_key(v)) for k, v in value.items())))
    return ("json", json.dumps(value, default=str))


@dataclass
class FieldIndex:
    """Value to document-id-set map for one field."""

    field: str
    unique: bool
    entries: dict[Hashable, set[str]] = field(default_factory=dict)

    def add(self, value: Any, doc_id: str) -> None:
        self.entries.setdefault(index_key(value), set()).add(doc_id)

    def remove(self, value: Any, doc_id: str) -> None:
        key = index_key(value)
        ids = self.entries.get(key)
        if ids is None:
            return
        ids.discard(doc_id)
        if not ids:
            del self.entries[key]

    def holders(self, value: Any) -> set[str] | None:
        return self.entries.get(index_key(value))

    def conflicts(self, value: Any) -> bool:
        """True if a unique index already maps ``value`` to some document."""
        return self.unique and bool(self.holders(value))


class Indexer:
    """Central owner of every field index, keyed by (collection, field)."""

    def __init__(self, metrics: MetricsRegistry | None = None) -> None:
        self._indexes: dict[str, dict[str, FieldIndex]] = {}
        self._metrics = metrics or get_metrics()

    def setup_index(
        self,
        collection: str,
        field: str,
        unique: bool,
        documents: Iterable[Document],
    ) -> FieldIndex:
        """Build (or rebuild) the index for one field from a full scan.

        Args:
            collection: Collection name.
            field: Indexed field.
            unique: Whether the index enforces uniqueness.
            documents: Current documents of the collection.

        Returns:
            The freshly built index.
        """
        idx = FieldIndex(field=field, unique=unique)
        for doc in documents:
            value = doc.get(field)
            if value is None:
                continue
            idx.add(value, doc[ID_FIELD])

        self._indexes.setdefault(collection, {})[field] = idx
        logger.debug(
            "index_built",
            collection=collection,
            field=field,
            unique=unique,
            distinct_values=len(idx.entries),
        )
        return idx

    def on_insert(self, collection: str, doc: Mapping[str, Any]) -> None:
        """Register a new document, rejecting unique-constraint violations.

        Raises:
            UniqueConstraintError: If any unique field value is already held.
        """
        indexes = self._indexes.get(collection)
        if not indexes:
            return

        doc_id = doc[ID_FIELD]
        present = [(idx, doc.get(idx.field)) for idx in indexes.values()]
        present = [(idx, value) for idx, value in present if value is not None]

        for idx, value in present:
            if idx.conflicts(value):
                self._reject(collection, idx.field, value)

        for idx, value in present:
            idx.add(value, doc_id)

    def on_update(
        self,
        collection: str,
        old_doc: Mapping[str, Any],
        new_doc: Mapping[str, Any],
    ) -> None:
        """Move a document's ids to its new field values.

        Raises:
            UniqueConstraintError: If a changed unique field collides with
                another document. No index is modified in that case.
        """
        indexes = self._indexes.get(collection)
        if not indexes:
            return

        doc_id = old_doc[ID_FIELD]
        changed = []
        for idx in indexes.values():
            old_value = old_doc.get(idx.field)
            new_value = new_doc.get(idx.field)
            if index_key(old_value) == index_key(new_value):
                continue
            changed.append((idx, old_value, new_value))

        for idx, _, new_value in changed:
            if new_value is not None and idx.conflicts(new_value):
                self._reject(collection, idx.field, new_value)

        for idx, old_value, new_value in changed:
            if old_value is not None:
                idx.remove(old_value, doc_id)
            if new_value is not None:
                idx.add(new_value, doc_id)

    def on_delete(self, collection: str, doc: Mapping[str, Any]) -> None:
        """Remove a document from every index of its collection."""
        for idx in self._indexes.get(collection, {}).values():
            value = doc.get(idx.field)
            if value is not None:
                idx.remove(value, doc[ID_FIELD])

    def find_by_value(self, collection: str, field: str, value: Any) -> set[str] | None:
        """Point lookup: ids of the documents holding ``value``, or None."""
        idx = self._indexes.get(collection, {}).get(field)
        if idx is None:
            return None
        ids = idx.holders(value)
        return set(ids) if ids is not None else None

    def indexed_fields(self, collection: str) -> list[str]:
        return list(self._indexes.get(collection, {}))

    def drop_collection(self, collection: str) -> None:
        """Discard every index of a collection."""
        self._indexes.pop(collection, None)

    def _reject(self, collection: str, field: str, value: Any) -> None:
        self._metrics.unique_violations_total.labels(
            collection=collection, field=field
        ).inc()
        logger.info(
            "unique_constraint_violated",
            collection=collection,
            field=field,
            value=value,
        )
        raise UniqueConstraintError(collection, field, value)
