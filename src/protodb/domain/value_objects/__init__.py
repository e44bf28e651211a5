"""Value objects for the document store domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Identifiers:
        - Document: Stored document mapping
        - DocumentId: Type-safe document identifier
        - generate_id, utc_now_iso, to_iso: Id and timestamp helpers

    Schema:
        - FieldType: Supported field types
        - NormalizedField: Canonical field definition
        - NormalizedSchema: Field name to NormalizedField mapping
        - UNSET: Marker for fields without a default

    Query:
        - FindOptions: filter/sort/limit/offset options
        - FilterQuery, SortSpec: Mapping aliases

    Relations:
        - RelationType: hasMany, hasOne, belongsTo, manyToMany
        - RelationDefinition: A relation declaration
"""

from protodb.domain.value_objects.identifiers import (
    CREATED_AT_FIELD,
    ID_FIELD,
    UPDATED_AT_FIELD,
    Document,
    DocumentId,
    generate_id,
    parse_date,
    to_iso,
    utc_now_iso,
)
from protodb.domain.value_objects.query import (
    ASCENDING,
    DESCENDING,
    FilterQuery,
    FindOptions,
    SortSpec,
)
from protodb.domain.value_objects.relations import (
    RelationDefinition,
    RelationType,
    normalize_relations,
)
from protodb.domain.value_objects.schema_types import (
    UNSET,
    FieldType,
    NormalizedField,
    NormalizedSchema,
)

__all__ = [
    # Identifiers
    "Document",
    "DocumentId",
    "ID_FIELD",
    "CREATED_AT_FIELD",
    "UPDATED_AT_FIELD",
    "generate_id",
    "parse_date",
    "to_iso",
    "utc_now_iso",
    # Query
    "ASCENDING",
    "DESCENDING",
    "FilterQuery",
    "FindOptions",
    "SortSpec",
    # Relations
    "RelationDefinition",
    "RelationType",
    "normalize_relations",
    # Schema
    "UNSET",
    "FieldType",
    "NormalizedField",
    "NormalizedSchema",
]
