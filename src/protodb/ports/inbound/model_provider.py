"""Model Provider port for resolving related models by name.

Relation resolution needs to turn the model name of a relation declaration
into a live model at call time. Models may reference each other before both
are registered, so the lookup is deferred until a read asks for the relation.
The store-level context implements this port and owns the registry.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Mapping, Protocol

if TYPE_CHECKING:
    from protodb.domain.value_objects import NormalizedSchema, RelationDefinition


class ResolvableModel(Protocol):
    """What the relation resolver needs to know about a model."""

    name: str
    collection: str
    schema: NormalizedSchema
    relations: Mapping[str, RelationDefinition]


class ModelProvider(Protocol):
    """Protocol for a registry of models addressable by name."""

    @abstractmethod
    def get_model(self, name: str) -> ResolvableModel | None:
        """Return the registered model called ``name``, or None."""
        ...
