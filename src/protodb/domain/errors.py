"""Error taxonomy for the document store.

Every error raised by the store derives from :class:`ProtoDBError`. None of
them are retried internally; they describe logical problems (bad input,
constraint violations, misconfigured relations) and are surfaced to the
immediate caller. Underlying file I/O errors are not wrapped.
"""

from __future__ import annotations

import json
from typing import Any


class ProtoDBError(Exception):
    """Base exception for all document store errors."""


class ValidationError(ProtoDBError):
    """Raised when a document violates its collection schema."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f'Validation error on "{field}": {reason}')
        self.field = field
        self.reason = reason


class AdapterError(ProtoDBError):
    """Raised when a storage adapter cannot be built or used."""

    def __init__(self, adapter: str, message: str) -> None:
        super().__init__(f"[{adapter}] {message}")
        self.adapter = adapter


class CollectionNotFoundError(ProtoDBError):
    """Raised when an operation addresses a collection that was never created."""

    def __init__(self, collection: str) -> None:
        super().__init__(f'Collection "{collection}" not found')
        self.collection = collection


class DocumentNotFoundError(ProtoDBError):
    """Raised by the ``*_or_throw`` variants when the target id does not exist."""

    def __init__(self, collection: str, document_id: str) -> None:
        super().__init__(f'Document "{document_id}" not found in "{collection}"')
        self.collection = collection
        self.document_id = document_id


class UniqueConstraintError(ProtoDBError):
    """Raised when an insert or update would duplicate a unique field value."""

    def __init__(self, collection: str, field: str, value: Any) -> None:
        super().__init__(
            f'Unique constraint violation on "{collection}.{field}": '
            f"value {_render(value)} already exists"
        )
        self.collection = collection
        self.field = field
        self.value = value


class QueryError(ProtoDBError):
    """Raised when a filter or find option is malformed."""


class UnknownOperatorError(QueryError):
    """Raised for operator tags outside the supported grammar."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Unknown operator: {operator}")
        self.operator = operator


class RelationError(ProtoDBError):
    """Raised when a relation cannot be resolved or is used incorrectly."""


def _render(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
