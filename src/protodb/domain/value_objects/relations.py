"""Relation declarations between models.

Relations are declared on a model and resolved only when a read asks for
them through ``include``. They are never persisted with the documents.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from protodb.domain.errors import RelationError


class RelationType(str, Enum):
    """Kinds of relation a model can declare."""

    HAS_MANY = "hasMany"
    HAS_ONE = "hasOne"
    BELONGS_TO = "belongsTo"
    MANY_TO_MANY = "manyToMany"


@dataclass(frozen=True)
class RelationDefinition:
    """A single relation declaration.

    Attributes:
        type: Relation kind.
        model: Name of the related model.
        foreign_key: For hasMany/hasOne, the field on the related documents
            holding the parent id. For belongsTo, the field on the owning
            documents holding the related id. For manyToMany, the field on
            the join rows holding the owner id.
        join_collection: manyToMany only, collection storing join rows.
        related_key: manyToMany only, field on join rows holding the related id.
    """

    type: RelationType
    model: str
    foreign_key: str
    join_collection: str | None = None
    related_key: str | None = None

    @classmethod
    def from_value(cls, value: RelationDefinition | Mapping[str, Any]) -> RelationDefinition:
        """Build a definition from an instance or a declaration mapping.

        Mappings may use snake_case keys or the camelCase keys of the
        JSON declaration format (``foreignKey``, ``joinCollection``,
        ``relatedKey``).
        """
        if isinstance(value, RelationDefinition):
            return value
        try:
            relation_type = RelationType(value["type"])
            model = value["model"]
        except (KeyError, ValueError) as e:
            raise RelationError(f"Invalid relation declaration {dict(value)!r}: {e}") from e

        foreign_key = value.get("foreign_key", value.get("foreignKey"))
        if not foreign_key:
            raise RelationError(f"Relation to {model!r} requires a foreign key")

        return cls(
            type=relation_type,
            model=model,
            foreign_key=foreign_key,
            join_collection=value.get("join_collection", value.get("joinCollection")),
            related_key=value.get("related_key", value.get("relatedKey")),
        )

    @property
    def is_many_to_many(self) -> bool:
        return self.type is RelationType.MANY_TO_MANY


def normalize_relations(
    relations: Mapping[str, RelationDefinition | Mapping[str, Any]] | None,
) -> dict[str, RelationDefinition]:
    """Normalize a relation-name to declaration mapping."""
    return {name: RelationDefinition.from_value(rel) for name, rel in (relations or {}).items()}
