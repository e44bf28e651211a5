"""Model - typed access to one collection.

A model binds a collection name to a schema and a set of relation
declarations, and exposes the CRUD operations of that collection. Writes
are validated against the schema before they reach the storage adapter;
reads can eagerly resolve relations through the model registry.

Usage:
    users = await db.model(ModelDefinition(
        name="User",
        collection="users",
        schema={"email": {"type": "string", "required": True, "unique": True}},
        relations={"posts": {"type": "hasMany", "model": "Post", "foreignKey": "authorId"}},
    ))
    alice = await users.create({"email": "alice@example.com"})
    found = await users.find_by_id(alice["id"], include=["posts"])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from protodb.domain.errors import DocumentNotFoundError, RelationError
from protodb.domain.services.relation_resolver import RelationResolver, require_join_config
from protodb.domain.services.schema import normalize_schema, validate_document
from protodb.domain.value_objects import (
    CREATED_AT_FIELD,
    ID_FIELD,
    UPDATED_AT_FIELD,
    Document,
    DocumentId,
    FilterQuery,
    FindOptions,
    NormalizedSchema,
    RelationDefinition,
    SortSpec,
    generate_id,
    normalize_relations,
    utc_now_iso,
)
from protodb.infrastructure.logging import get_logger
from protodb.infrastructure.metrics import MetricsRegistry

if TYPE_CHECKING:
    from protodb.ports.inbound.model_provider import ModelProvider
    from protodb.ports.outbound.storage_adapter import StorageAdapter

logger = get_logger(__name__, component="model")

# Collection prefix length used when a definition has no explicit prefix
DEFAULT_PREFIX_LENGTH = 3


@dataclass
class ModelDefinition:
    """Declaration of a model.

    Attributes:
        name: Model name, used by relations to refer to it.
        collection: Backing collection name.
        schema: Raw field definitions (see ``normalize_field``).
        timestamps: Refresh ``updatedAt`` on every update.
        prefix: Id prefix, defaults to the first three collection characters.
        relations: Relation name to declaration.
    """

    name: str
    collection: str
    schema: Mapping[str, Any] = field(default_factory=dict)
    timestamps: bool = True
    prefix: str | None = None
    relations: Mapping[str, RelationDefinition | Mapping[str, Any]] = field(default_factory=dict)


class Model:
    """CRUD, validation and relation loading for one collection.

    Attributes:
        name: Model name.
        collection: Backing collection.
        schema: Normalized schema.
        relations: Normalized relation declarations.
        prefix: Prefix of generated ids.
        timestamps: Whether updates refresh ``updatedAt``.
    """

    def __init__(
        self,
        definition: ModelDefinition,
        adapter: StorageAdapter,
        registry: ModelProvider | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.name = definition.name
        self.collection = definition.collection
        self.schema: NormalizedSchema = normalize_schema(definition.schema)
        self.relations: dict[str, RelationDefinition] = normalize_relations(definition.relations)
        self.prefix = (
            definition.prefix
            if definition.prefix is not None
            else definition.collection[:DEFAULT_PREFIX_LENGTH]
        )
        self.timestamps = definition.timestamps

        self._registry = registry
        self._metrics = metrics
        self._adapter = adapter
        self._resolver = RelationResolver(adapter, registry, metrics=metrics)

    @property
    def adapter(self) -> StorageAdapter:
        return self._adapter

    def attach(self, adapter: StorageAdapter) -> None:
        """Point the model at a (new) storage adapter, e.g. after a reconnect."""
        self._adapter = adapter
        self._resolver = RelationResolver(adapter, self._registry, metrics=self._metrics)

    async def init(self) -> None:
        """Create the backing collection and its indexes."""
        await self._adapter.create_collection(self.collection, self.schema)
        logger.debug("model_initialized", model=self.name, collection=self.collection)

    def generate_id(self) -> DocumentId:
        return generate_id(self.prefix)

    # -- Writes ----------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> Document:
        """Validate and insert a new document.

        The id and both timestamps are assigned here and override any values
        present in ``data``. They are written even when the model does not
        maintain timestamps, which only turns off the refresh on update.

        Raises:
            ValidationError: If ``data`` violates the schema.
            UniqueConstraintError: If a unique value is already taken.
        """
        doc = validate_document(data, self.schema)
        now = utc_now_iso()
        doc[ID_FIELD] = self.generate_id()
        doc[CREATED_AT_FIELD] = now
        doc[UPDATED_AT_FIELD] = now
        return await self._adapter.insert(self.collection, doc)

    async def create_many(self, items: Iterable[Mapping[str, Any]]) -> list[Document]:
        """Create documents one at a time.

        Not transactional: documents created before a failing item stay.
        """
        return [await self.create(item) for item in items]

    async def update(self, id: str, data: Mapping[str, Any]) -> Document | None:
        """Validate and merge a partial update.

        Returns:
            The updated document, or None when the id does not exist.
        """
        changes = validate_document(data, self.schema, is_update=True)
        changes.pop(ID_FIELD, None)
        if self.timestamps:
            changes[UPDATED_AT_FIELD] = utc_now_iso()
        return await self._adapter.update(self.collection, id, changes)

    async def update_or_throw(self, id: str, data: Mapping[str, Any]) -> Document:
        doc = await self.update(id, data)
        if doc is None:
            raise DocumentNotFoundError(self.collection, id)
        return doc

    async def delete(self, id: str) -> bool:
        return await self._adapter.delete(self.collection, id)

    async def delete_many(self, filter: FilterQuery) -> int:
        return await self._adapter.delete_many(self.collection, filter)

    # -- Reads -----------------------------------------------------------

    async def find_by_id(self, id: str, include: Sequence[str] | None = None) -> Document | None:
        doc = await self._adapter.find_by_id(self.collection, id)
        if doc is None or not include:
            return doc
        [populated] = await self._resolver.populate(self, [doc], include)
        return populated

    async def find_by_id_or_throw(self, id: str, include: Sequence[str] | None = None) -> Document:
        doc = await self.find_by_id(id, include=include)
        if doc is None:
            raise DocumentNotFoundError(self.collection, id)
        return doc

    async def find_one(
        self, filter: FilterQuery, include: Sequence[str] | None = None
    ) -> Document | None:
        """First document matching ``filter`` in storage order, or None."""
        docs = await self._adapter.find(self.collection, FindOptions(filter=filter, limit=1))
        if not docs:
            return None
        if include:
            docs = await self._resolver.populate(self, docs, include)
        return docs[0]

    async def find(
        self,
        filter: FilterQuery | None = None,
        sort: SortSpec | None = None,
        limit: int | None = None,
        offset: int | None = None,
        include: Sequence[str] | None = None,
    ) -> list[Document]:
        """Filter, sort and paginate, then resolve ``include`` relations."""
        options = FindOptions(filter=filter, sort=sort, limit=limit, offset=offset)
        docs = await self._adapter.find(self.collection, options)
        if not include:
            return docs
        return await self._resolver.populate(self, docs, include)

    async def find_all(self) -> list[Document]:
        return await self._adapter.find(self.collection)

    async def count(self, filter: FilterQuery | None = None) -> int:
        return await self._adapter.count(self.collection, filter)

    # -- manyToMany links ------------------------------------------------

    async def associate(self, id: str, relation_name: str, related_id: str) -> Document:
        """Link a document to a related one through the join collection.

        Returns:
            The inserted join row.

        Raises:
            RelationError: If the relation is not a configured manyToMany.
        """
        relation = self._many_to_many(relation_name, "associate")
        join_collection, related_key = require_join_config(relation_name, relation)
        now = utc_now_iso()
        row = {
            ID_FIELD: generate_id(f"{self.prefix}rel"),
            relation.foreign_key: id,
            related_key: related_id,
            CREATED_AT_FIELD: now,
            UPDATED_AT_FIELD: now,
        }
        return await self._adapter.insert(join_collection, row)

    async def dissociate(self, id: str, relation_name: str, related_id: str) -> int:
        """Remove every join row linking ``id`` to ``related_id``.

        Returns:
            Number of join rows removed.
        """
        relation = self._many_to_many(relation_name, "dissociate")
        join_collection, related_key = require_join_config(relation_name, relation)
        return await self._adapter.delete_many(
            join_collection, {relation.foreign_key: id, related_key: related_id}
        )

    def _many_to_many(self, relation_name: str, operation: str) -> RelationDefinition:
        relation, _ = self._resolver.resolve_relation(self, relation_name)
        if not relation.is_many_to_many:
            raise RelationError(
                f"{operation}() is only supported for manyToMany relations, "
                f'got "{relation.type.value}"'
            )
        return relation

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, collection={self.collection!r})"
