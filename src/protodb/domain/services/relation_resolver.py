"""Eager relation resolution for read operations.

Given the parent documents of one read and an ``include`` list, the resolver
issues one batched query per relation (never one per parent) and attaches
the results under the relation name:

    hasMany     list of related documents, ``[]`` when none
    hasOne      first related document in storage order, or None
    belongsTo   the referenced document, or None
    manyToMany  list of related documents reached through join rows

Relations are resolved one after the other and independently, each against
the same parent set. Parents are shallow-copied before anything is attached,
so the relation fields never reach the store's own documents.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Hashable, Iterable, Sequence

from protodb.domain.errors import RelationError
from protodb.domain.services.indexer import index_key
from protodb.domain.value_objects import (
    ID_FIELD,
    Document,
    FindOptions,
    RelationDefinition,
    RelationType,
)
from protodb.infrastructure.logging import get_logger
from protodb.infrastructure.metrics import MetricsRegistry, get_metrics
from protodb.infrastructure.tracing import trace_span

if TYPE_CHECKING:
    from protodb.ports.inbound.model_provider import ModelProvider, ResolvableModel
    from protodb.ports.outbound.storage_adapter import StorageAdapter

logger = get_logger(__name__, component="relation_resolver")


def _distinct(values: Iterable[Any]) -> list[Any]:
    """Distinct values in first-seen order.

    Values are compared by index key, so lists and dicts are accepted.
    """
    seen: dict[Hashable, Any] = {}
    for value in values:
        seen.setdefault(index_key(value), value)
    return list(seen.values())


def _by_id(targets: Iterable[Document]) -> dict[Hashable, Document]:
    return {index_key(target[ID_FIELD]): target for target in targets}


class RelationResolver:
    """Batched resolver for hasMany, hasOne, belongsTo and manyToMany relations."""

    def __init__(
        self,
        adapter: StorageAdapter,
        registry: ModelProvider | None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            adapter: Storage used for the batched lookups.
            registry: Model registry used to resolve related model names.
                Without one every resolution fails explicitly.
            metrics: Metrics registry (defaults to the global one).
        """
        self._adapter = adapter
        self._registry = registry
        self._metrics = metrics or get_metrics()

    def resolve_relation(
        self, owner: ResolvableModel, relation_name: str
    ) -> tuple[RelationDefinition, ResolvableModel]:
        """Look up a relation declaration and its related model.

        Raises:
            RelationError: If the relation is unknown on ``owner``, there is
                no model registry, or the related model is not registered.
        """
        relation = owner.relations.get(relation_name)
        if relation is None:
            raise RelationError(
                f'Unknown relation "{relation_name}" on model "{owner.name}"'
            )
        if self._registry is None:
            raise RelationError(
                f'Cannot resolve relation "{relation_name}" on model "{owner.name}" '
                "without a model registry"
            )
        related = self._registry.get_model(relation.model)
        if related is None:
            raise RelationError(
                f'Related model "{relation.model}" not found. '
                "Make sure it is defined before querying."
            )
        return relation, related

    async def populate(
        self,
        owner: ResolvableModel,
        docs: Sequence[Document],
        include: Sequence[str],
    ) -> list[Document]:
        """Attach every requested relation to copies of ``docs``.

        Args:
            owner: Model the parent documents belong to.
            docs: Parent documents.
            include: Relation names to resolve, in order.

        Returns:
            Shallow copies of ``docs`` carrying the relation fields.
        """
        if not include or not docs:
            return list(docs)

        parents = [dict(doc) for doc in docs]

        for relation_name in include:
            relation, related = self.resolve_relation(owner, relation_name)
            with trace_span(
                "protodb.populate",
                {
                    "model": owner.name,
                    "relation": relation_name,
                    "relation_type": relation.type.value,
                    "parents": len(parents),
                },
            ):
                if relation.type is RelationType.HAS_MANY:
                    await self._has_many(parents, relation_name, relation, related)
                elif relation.type is RelationType.HAS_ONE:
                    await self._has_one(parents, relation_name, relation, related)
                elif relation.type is RelationType.BELONGS_TO:
                    await self._belongs_to(parents, relation_name, relation, related)
                else:
                    await self._many_to_many(parents, relation_name, relation, related)

            logger.debug(
                "relation_populated",
                model=owner.name,
                relation=relation_name,
                relation_type=relation.type.value,
                parents=len(parents),
            )

        return parents

    async def _query(
        self, relation: RelationDefinition, collection: str, field: str, values: list[Any]
    ) -> list[Document]:
        self._metrics.relation_queries_total.labels(relation_type=relation.type.value).inc()
        return await self._adapter.find(
            collection, FindOptions(filter={field: {"$in": values}})
        )

    async def _children_by_parent(
        self,
        parents: list[Document],
        relation: RelationDefinition,
        related: ResolvableModel,
    ) -> dict[Any, list[Document]]:
        parent_ids = [doc[ID_FIELD] for doc in parents]
        children = await self._query(relation, related.collection, relation.foreign_key, parent_ids)
        grouped: dict[Any, list[Document]] = {}
        for child in children:
            grouped.setdefault(child.get(relation.foreign_key), []).append(child)
        return grouped

    async def _has_many(
        self,
        parents: list[Document],
        name: str,
        relation: RelationDefinition,
        related: ResolvableModel,
    ) -> None:
        grouped = await self._children_by_parent(parents, relation, related)
        for doc in parents:
            doc[name] = grouped.get(doc[ID_FIELD], [])

    async def _has_one(
        self,
        parents: list[Document],
        name: str,
        relation: RelationDefinition,
        related: ResolvableModel,
    ) -> None:
        # Storage order decides which child wins when several match
        grouped = await self._children_by_parent(parents, relation, related)
        for doc in parents:
            children = grouped.get(doc[ID_FIELD])
            doc[name] = children[0] if children else None

    async def _belongs_to(
        self,
        parents: list[Document],
        name: str,
        relation: RelationDefinition,
        related: ResolvableModel,
    ) -> None:
        keys = _distinct(
            doc.get(relation.foreign_key) for doc in parents if doc.get(relation.foreign_key)
        )
        if not keys:
            for doc in parents:
                doc[name] = None
            return

        targets = await self._query(relation, related.collection, ID_FIELD, keys)
        by_id = _by_id(targets)
        for doc in parents:
            doc[name] = by_id.get(index_key(doc.get(relation.foreign_key)))

    async def _many_to_many(
        self,
        parents: list[Document],
        name: str,
        relation: RelationDefinition,
        related: ResolvableModel,
    ) -> None:
        join_collection, related_key = require_join_config(name, relation)

        parent_ids = [doc[ID_FIELD] for doc in parents]
        join_rows = await self._query(relation, join_collection, relation.foreign_key, parent_ids)

        related_ids = _distinct(row.get(related_key) for row in join_rows)
        targets = (
            await self._query(relation, related.collection, ID_FIELD, related_ids)
            if related_ids
            else []
        )
        by_id = _by_id(targets)

        grouped: dict[Any, list[Document]] = {}
        for row in join_rows:
            target = by_id.get(index_key(row.get(related_key)))
            if target is not None:
                grouped.setdefault(row.get(relation.foreign_key), []).append(target)

        for doc in parents:
            doc[name] = grouped.get(doc[ID_FIELD], [])


def require_join_config(name: str, relation: RelationDefinition) -> tuple[str, str]:
    """Return (join_collection, related_key) of a manyToMany relation.

    Raises:
        RelationError: If either setting is missing.
    """
    if not relation.join_collection or not relation.related_key:
        raise RelationError(
            f'manyToMany relation "{name}" requires joinCollection and relatedKey'
        )
    return relation.join_collection, relation.related_key
