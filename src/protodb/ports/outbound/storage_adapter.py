"""Storage Adapter port for collection-level document storage.

This outbound port defines the contract every storage backend honors. The
model layer, and any external consumer (CLI, REST, migrations), talks to
storage only through it.

The storage adapter is responsible for:
- Owning the documents of every collection and their indexes
- Enforcing collection existence and unique constraints
- Persisting changes before acknowledging writes
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Mapping, Protocol

from protodb.domain.value_objects import Document, FilterQuery, FindOptions, NormalizedSchema


class StorageAdapter(Protocol):
    """Protocol for collection-scoped document storage.

    Every collection-scoped operation raises CollectionNotFoundError when
    the collection was never created.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the backing store and load existing data."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Persist pending changes and release resources."""
        ...

    @abstractmethod
    async def insert(self, collection: str, doc: Document) -> Document:
        """Insert a complete document (id and timestamps included).

        Raises:
            UniqueConstraintError: If a unique field value already exists.
        """
        ...

    @abstractmethod
    async def find_by_id(self, collection: str, id: str) -> Document | None:
        """Return the document with the given id, or None."""
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        options: FindOptions | Mapping[str, Any] | None = None,
    ) -> list[Document]:
        """Return documents matching filter/sort/limit/offset options."""
        ...

    @abstractmethod
    async def count(self, collection: str, filter: FilterQuery | None = None) -> int:
        """Count documents matching a filter."""
        ...

    @abstractmethod
    async def update(
        self,
        collection: str,
        id: str,
        data: Mapping[str, Any],
    ) -> Document | None:
        """Merge partial data into a document; None when the id is absent.

        Raises:
            UniqueConstraintError: If the merged document collides on a unique field.
        """
        ...

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete one document; True if it existed."""
        ...

    @abstractmethod
    async def delete_many(self, collection: str, filter: FilterQuery) -> int:
        """Delete every matching document; returns the number removed."""
        ...

    @abstractmethod
    async def create_collection(self, collection: str, schema: NormalizedSchema) -> None:
        """Create (or re-open) a collection and build its indexes."""
        ...

    @abstractmethod
    async def drop_collection(self, collection: str) -> None:
        """Discard a collection, its documents and its indexes."""
        ...

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Names of the existing collections."""
        ...
