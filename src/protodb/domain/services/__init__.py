"""Domain services for the document store.

Services hold the logic that operates on documents without owning storage:
filter evaluation, sorting and pagination, field indexes, schema validation
and relation resolution.
"""

from protodb.domain.services.filter_engine import (
    apply_find_options,
    count_with_filter,
    matches_filter,
    sort_documents,
)
from protodb.domain.services.indexer import FieldIndex, Indexer, index_key
from protodb.domain.services.operators import (
    OPERATORS,
    FilterOperator,
    apply_operator,
    strict_equals,
)
from protodb.domain.services.relation_resolver import RelationResolver
from protodb.domain.services.schema import (
    normalize_field,
    normalize_schema,
    validate_document,
)

__all__ = [
    "FieldIndex",
    "FilterOperator",
    "Indexer",
    "OPERATORS",
    "RelationResolver",
    "apply_find_options",
    "apply_operator",
    "count_with_filter",
    "index_key",
    "matches_filter",
    "normalize_field",
    "normalize_schema",
    "sort_documents",
    "strict_equals",
    "validate_document",
]
