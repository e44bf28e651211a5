"""JSON-file Storage Adapter implementation.

This adapter implements the StorageAdapter protocol on top of the
FileEngine (persistence), the Indexer (unique constraints) and the
in-memory filter engine (reads).

Write Path:
    Every mutation runs its index checks and in-memory changes synchronously,
    then marks the collection dirty and awaits a flush. Because the event
    loop never interleaves two synchronous sections, each insert, update or
    delete is atomic with respect to other operations in the process, and
    durable writes land in call order.

Read Path:
    Reads scan the in-memory list through the filter engine. Indexes are not
    consulted. Returned documents are shallow copies; mutating them never
    affects the store.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping

from protodb.adapters.outbound.file_engine import FileEngine
from protodb.domain.errors import CollectionNotFoundError, ProtoDBError
from protodb.domain.services.filter_engine import apply_find_options, count_with_filter
from protodb.domain.services.indexer import Indexer
from protodb.domain.value_objects import (
    ID_FIELD,
    Document,
    FilterQuery,
    FindOptions,
    NormalizedSchema,
)
from protodb.infrastructure.logging import get_logger
from protodb.infrastructure.metrics import MetricsRegistry, get_metrics

logger = get_logger(__name__, component="json_adapter")


class JsonAdapter:
    """Document store backed by one JSON file per collection.

    Attributes:
        data_dir: Directory holding the collection files.
    """

    adapter_name = "json"

    def __init__(
        self,
        data_dir: str | Path,
        fsync: bool = True,
        indent: int | None = 2,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the adapter (no I/O happens before connect()).

        Args:
            data_dir: Directory for collection files.
            fsync: fsync collection files on every write.
            indent: JSON indentation of collection files.
            metrics: Metrics registry (defaults to the global one).
        """
        self._metrics = metrics or get_metrics()
        self._engine = FileEngine(data_dir, fsync=fsync, indent=indent, metrics=self._metrics)
        self._indexer = Indexer(metrics=self._metrics)
        self._schemas: dict[str, NormalizedSchema] = {}
        self._connected = False

    @property
    def data_dir(self) -> Path:
        return self._engine.data_dir

    @property
    def indexer(self) -> Indexer:
        return self._indexer

    @property
    def is_connected(self) -> bool:
        return self._connected

    # -- Lifecycle -------------------------------------------------------

    async def connect(self) -> None:
        """Load every collection file into memory."""
        if self._connected:
            return
        await self._engine.load()
        self._connected = True
        logger.info("adapter_connected", data_dir=str(self.data_dir))

    async def disconnect(self) -> None:
        """Persist pending changes and stop the writer."""
        if not self._connected:
            return
        await self._engine.flush_if_dirty()
        await self._engine.close()
        self._connected = False
        logger.info("adapter_disconnected", data_dir=str(self.data_dir))

    # -- Collections -----------------------------------------------------

    async def create_collection(self, collection: str, schema: NormalizedSchema) -> None:
        """Create a collection (or re-open an existing one) and build its indexes.

        Indexes are rebuilt from the documents currently held, so re-creating
        a collection after a reconnect restores its constraints.
        """
        self._require_connected()
        docs = self._engine.create_collection(collection)
        self._schemas[collection] = schema

        self._indexer.drop_collection(collection)
        self._indexer.setup_index(collection, ID_FIELD, True, docs)
        for field, definition in schema.items():
            if definition.indexed and field != ID_FIELD:
                self._indexer.setup_index(collection, field, definition.unique, docs)

        self._metrics.documents.labels(collection=collection).set(len(docs))
        await self._engine.flush()
        logger.info(
            "collection_created",
            collection=collection,
            documents=len(docs),
            indexes=self._indexer.indexed_fields(collection),
        )

    async def drop_collection(self, collection: str) -> None:
        """Discard a collection with its indexes and backing file."""
        self._require_connected()
        self._indexer.drop_collection(collection)
        self._schemas.pop(collection, None)
        await self._engine.drop_collection(collection)
        self._metrics.documents.labels(collection=collection).set(0)
        logger.info("collection_dropped", collection=collection)

    async def list_collections(self) -> list[str]:
        self._require_connected()
        return self._engine.list_collections()

    def get_schema(self, collection: str) -> NormalizedSchema | None:
        """Schema registered for a collection in this process, if any."""
        return self._schemas.get(collection)

    # -- Writes ----------------------------------------------------------

    async def insert(self, collection: str, doc: Document) -> Document:
        """Append a complete document after unique-constraint checks.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
            UniqueConstraintError: If the id or a unique value is taken.
        """
        with self._observe("insert", collection):
            docs = self._get_collection_or_throw(collection)
            if not isinstance(doc.get(ID_FIELD), str) or not doc[ID_FIELD]:
                raise ProtoDBError("Documents must carry a non-empty string id")

            stored = dict(doc)
            self._indexer.on_insert(collection, stored)
            docs.append(stored)
            await self._commit(collection, docs)
            return dict(stored)

    async def update(
        self,
        collection: str,
        id: str,
        data: Mapping[str, Any],
    ) -> Document | None:
        """Merge partial data over a document; the id never changes.

        Returns:
            The merged document, or None if no document has this id.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
            UniqueConstraintError: If the merged document collides on a
                unique field. The stored document is left untouched.
        """
        with self._observe("update", collection):
            docs = self._get_collection_or_throw(collection)
            position = self._position(docs, id)
            if position is None:
                return None

            old_doc = docs[position]
            new_doc = {**old_doc, **data, ID_FIELD: old_doc[ID_FIELD]}
            self._indexer.on_update(collection, old_doc, new_doc)

            docs[position] = new_doc
            await self._commit(collection, docs)
            return dict(new_doc)

    async def delete(self, collection: str, id: str) -> bool:
        """Delete one document by id; False if it did not exist."""
        with self._observe("delete", collection):
            docs = self._get_collection_or_throw(collection)
            position = self._position(docs, id)
            if position is None:
                return False

            self._indexer.on_delete(collection, docs[position])
            del docs[position]
            await self._commit(collection, docs)
            return True

    async def delete_many(self, collection: str, filter: FilterQuery) -> int:
        """Delete every document matching a filter with a single flush.

        Returns:
            Number of documents removed.
        """
        with self._observe("delete_many", collection):
            docs = self._get_collection_or_throw(collection)
            matching = apply_find_options(docs, FindOptions(filter=filter))
            if not matching:
                return 0

            for doc in matching:
                self._indexer.on_delete(collection, doc)

            removed_ids = {doc[ID_FIELD] for doc in matching}
            docs[:] = [doc for doc in docs if doc[ID_FIELD] not in removed_ids]
            await self._commit(collection, docs)
            return len(removed_ids)

    # -- Reads -----------------------------------------------------------

    async def find_by_id(self, collection: str, id: str) -> Document | None:
        with self._observe("find_by_id", collection):
            docs = self._get_collection_or_throw(collection)
            position = self._position(docs, id)
            return dict(docs[position]) if position is not None else None

    async def find(
        self,
        collection: str,
        options: FindOptions | Mapping[str, Any] | None = None,
    ) -> list[Document]:
        with self._observe("find", collection):
            docs = self._get_collection_or_throw(collection)
            return [dict(doc) for doc in apply_find_options(docs, options)]

    async def count(self, collection: str, filter: FilterQuery | None = None) -> int:
        with self._observe("count", collection):
            docs = self._get_collection_or_throw(collection)
            return count_with_filter(docs, filter)

    # -- Helpers ---------------------------------------------------------

    async def _commit(self, collection: str, docs: list[Document]) -> None:
        self._metrics.documents.labels(collection=collection).set(len(docs))
        self._engine.mark_dirty(collection)
        await self._engine.flush()

    def _require_connected(self) -> None:
        if not self._connected:
            raise ProtoDBError("Adapter is not connected. Call connect() first.")

    def _get_collection_or_throw(self, collection: str) -> list[Document]:
        self._require_connected()
        if not self._engine.has_collection(collection):
            raise CollectionNotFoundError(collection)
        return self._engine.get_collection(collection)

    @staticmethod
    def _position(docs: list[Document], id: str) -> int | None:
        for position, doc in enumerate(docs):
            if doc.get(ID_FIELD) == id:
                return position
        return None

    @contextmanager
    def _observe(self, operation: str, collection: str) -> Iterator[None]:
        start = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception as e:
            status = "error"
            logger.warning(
                "operation_failed",
                operation=operation,
                collection=collection,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        finally:
            self._metrics.operations_total.labels(
                operation=operation, collection=collection, status=status
            ).inc()
            self._metrics.operation_latency_seconds.labels(operation=operation).observe(
                time.perf_counter() - start
            )
