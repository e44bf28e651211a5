"""
ProtoDB - embedded document store

A schema-validated document store persisting each collection as a JSON file,
with unique indexes, a MongoDB-style filter language and eager relation
loading.
"""

__version__ = "0.1.0"

from protodb.application import Model, ModelDefinition, ProtoDB
from protodb.domain.errors import (
    AdapterError,
    CollectionNotFoundError,
    DocumentNotFoundError,
    ProtoDBError,
    QueryError,
    RelationError,
    UniqueConstraintError,
    UnknownOperatorError,
    ValidationError,
)
from protodb.domain.value_objects import FieldType, FindOptions, RelationDefinition, RelationType
from protodb.infrastructure.config import Config, StorageConfig

__all__ = [
    "__version__",
    "AdapterError",
    "CollectionNotFoundError",
    "Config",
    "DocumentNotFoundError",
    "FieldType",
    "FindOptions",
    "Model",
    "ModelDefinition",
    "ProtoDB",
    "ProtoDBError",
    "QueryError",
    "RelationDefinition",
    "RelationError",
    "RelationType",
    "StorageConfig",
    "UniqueConstraintError",
    "UnknownOperatorError",
    "ValidationError",
]
