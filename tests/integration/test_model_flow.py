"""Integration tests for models and the ProtoDB context.

Models are exercised end to end: validation, id and timestamp assignment,
storage through the JSON adapter and reconnecting to the same data.
"""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from protodb import (
    AdapterError,
    DocumentNotFoundError,
    ModelDefinition,
    ProtoDB,
    ProtoDBError,
    UniqueConstraintError,
    ValidationError,
)
from protodb.infrastructure.config import Config, StorageConfig
from protodb.infrastructure.metrics import MetricsRegistry


def user_definition(**overrides: object) -> ModelDefinition:
    fields: dict = dict(
        name="User",
        collection="users",
        schema={
            "name": {"type": "string", "required": True, "minLength": 2},
            "email": {"type": "string", "unique": True},
            "age": {"type": "number", "min": 0},
            "role": {"type": "string", "enum": ["admin", "member"], "default": "member"},
        },
        prefix="usr",
    )
    fields.update(overrides)
    return ModelDefinition(**fields)


@pytest.mark.integration
class TestModelCrud:
    """CRUD through a model."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, db: ProtoDB) -> None:
        """Created documents get a prefixed id and equal timestamps."""
        users = await db.model(user_definition())
        alice = await users.create({"name": "Alice", "email": "alice@test.com", "age": 30})

        assert re.fullmatch(r"usr_[0-9a-f]{12}", alice["id"])
        assert alice["role"] == "member"
        assert alice["createdAt"] == alice["updatedAt"]
        assert await users.find_by_id(alice["id"]) == alice

    @pytest.mark.asyncio
    async def test_caller_cannot_choose_id(self, db: ProtoDB) -> None:
        """The generated id wins over one in the input."""
        users = await db.model(user_definition())
        doc = await users.create({"name": "Alice", "id": "chosen"})

        assert doc["id"] != "chosen"

    @pytest.mark.asyncio
    async def test_default_prefix(self, db: ProtoDB) -> None:
        """Without a prefix the first three collection characters are used."""
        posts = await db.model(ModelDefinition(name="Post", collection="posts", schema={"title": "string"}))
        doc = await posts.create({"title": "Hello"})

        assert doc["id"].startswith("pos_")

    @pytest.mark.asyncio
    async def test_queries(self, db: ProtoDB) -> None:
        """find, find_one, find_all and count."""
        users = await db.model(user_definition())
        await users.create_many(
            [
                {"name": "Alice", "age": 30},
                {"name": "Bob", "age": 25},
                {"name": "Carol", "age": 35},
                {"name": "Dave", "age": 28},
            ]
        )

        older = await users.find(filter={"age": {"$gte": 30}}, sort={"age": -1})
        assert [u["name"] for u in older] == ["Carol", "Alice"]

        page = await users.find(sort={"age": 1}, limit=2, offset=1)
        assert [u["age"] for u in page] == [28, 30]

        bob = await users.find_one({"name": "Bob"})
        assert bob is not None and bob["age"] == 25
        assert await users.find_one({"name": "Nobody"}) is None

        assert len(await users.find_all()) == 4
        assert await users.count() == 4
        assert await users.count({"age": {"$gt": 28}}) == 2

    @pytest.mark.asyncio
    async def test_update(self, db: ProtoDB) -> None:
        """Partial updates keep other fields and refresh updatedAt."""
        users = await db.model(user_definition())
        alice = await users.create({"name": "Alice", "email": "a@test.com", "age": 30})

        updated = await users.update(alice["id"], {"age": 31})

        assert updated is not None
        assert updated["age"] == 31
        assert updated["email"] == "a@test.com"
        assert updated["createdAt"] == alice["createdAt"]
        assert updated["updatedAt"] >= alice["updatedAt"]

    @pytest.mark.asyncio
    async def test_update_without_timestamps(self, db: ProtoDB) -> None:
        """Models without timestamps are stamped on create but never refreshed."""
        notes = await db.model(
            ModelDefinition(name="Note", collection="notes", schema={"text": "string"}, timestamps=False)
        )
        note = await notes.create({"text": "a"})
        updated = await notes.update(note["id"], {"text": "b"})

        assert note["createdAt"] == note["updatedAt"]
        assert updated is not None
        assert updated["text"] == "b"
        assert updated["createdAt"] == note["createdAt"]
        assert updated["updatedAt"] == note["updatedAt"]

    @pytest.mark.asyncio
    async def test_or_throw_variants(self, db: ProtoDB) -> None:
        """*_or_throw raise DocumentNotFoundError for unknown ids."""
        users = await db.model(user_definition())

        assert await users.find_by_id("usr_missing") is None
        assert await users.update("usr_missing", {"age": 1}) is None
        with pytest.raises(DocumentNotFoundError, match="usr_missing"):
            await users.find_by_id_or_throw("usr_missing")
        with pytest.raises(DocumentNotFoundError):
            await users.update_or_throw("usr_missing", {"age": 1})

    @pytest.mark.asyncio
    async def test_delete(self, db: ProtoDB) -> None:
        """delete and delete_many."""
        users = await db.model(user_definition())
        docs = await users.create_many(
            [{"name": "Al", "age": 20}, {"name": "Bo", "age": 30}, {"name": "Cy", "age": 40}]
        )

        assert await users.delete(docs[0]["id"]) is True
        assert await users.delete(docs[0]["id"]) is False
        assert await users.delete_many({"age": {"$gte": 30}}) == 2
        assert await users.count() == 0


@pytest.mark.integration
class TestModelValidation:
    """Validation and constraints through a model."""

    @pytest.mark.asyncio
    async def test_create_validation(self, db: ProtoDB) -> None:
        """Invalid documents are rejected before storage."""
        users = await db.model(user_definition())

        with pytest.raises(ValidationError, match="required"):
            await users.create({})
        with pytest.raises(ValidationError, match="minimum length"):
            await users.create({"name": "A"})
        with pytest.raises(ValidationError, match="must be one of"):
            await users.create({"name": "Alice", "role": "owner"})
        assert await users.count() == 0

    @pytest.mark.asyncio
    async def test_update_validation(self, db: ProtoDB) -> None:
        """Updates are validated for the fields they carry."""
        users = await db.model(user_definition())
        doc = await users.create({"name": "Test", "age": 10})

        with pytest.raises(ValidationError):
            await users.update(doc["id"], {"age": -1})
        assert (await users.find_by_id(doc["id"]))["age"] == 10

    @pytest.mark.asyncio
    async def test_unique(self, db: ProtoDB) -> None:
        """Duplicate unique values are rejected."""
        users = await db.model(user_definition())
        await users.create({"name": "Alice", "email": "dup@test.com"})

        with pytest.raises(UniqueConstraintError):
            await users.create({"name": "Alicia", "email": "dup@test.com"})
        assert await users.count({"email": "dup@test.com"}) == 1

    @pytest.mark.asyncio
    async def test_create_many_is_not_transactional(self, db: ProtoDB) -> None:
        """Documents created before a failing item remain."""
        users = await db.model(user_definition())

        with pytest.raises(ValidationError):
            await users.create_many([{"name": "Alice"}, {"name": "B"}, {"name": "Carol"}])
        assert [u["name"] for u in await users.find_all()] == ["Alice"]


@pytest.mark.integration
class TestProtoDB:
    """Tests for the store context."""

    @pytest.mark.asyncio
    async def test_model_requires_connection(self, test_config: Config, metrics_registry: MetricsRegistry) -> None:
        """Defining a model before connect() fails."""
        store = ProtoDB(test_config, metrics=metrics_registry)
        with pytest.raises(ProtoDBError, match="Not connected"):
            await store.model(user_definition())
        with pytest.raises(ProtoDBError):
            store.get_adapter()

    @pytest.mark.asyncio
    async def test_model_is_registered_once(self, db: ProtoDB) -> None:
        """Registering a name twice returns the first model."""
        first = await db.model(user_definition())
        second = await db.model(user_definition(collection="other"))

        assert second is first
        assert db.get_model("User") is first
        assert db.get_model("Missing") is None

    @pytest.mark.asyncio
    async def test_connect_and_disconnect_are_idempotent(self, db: ProtoDB) -> None:
        """Repeated connect/disconnect calls are no-ops."""
        await db.connect()
        assert db.is_connected
        await db.disconnect()
        await db.disconnect()
        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_reconnect_reinitializes_models(
        self, test_config: Config, metrics_registry: MetricsRegistry
    ) -> None:
        """Models keep working, with their constraints, after a reconnect."""
        store = ProtoDB(test_config, metrics=metrics_registry)
        await store.connect()
        users = await store.model(user_definition())
        alice = await users.create({"name": "Alice", "email": "a@test.com"})
        await store.disconnect()

        await store.connect()
        try:
            assert await users.find_by_id(alice["id"]) == alice
            with pytest.raises(UniqueConstraintError):
                await users.create({"name": "Again", "email": "a@test.com"})
        finally:
            await store.disconnect()

    @pytest.mark.asyncio
    async def test_data_survives_new_instance(self, data_dir: Path, metrics_registry: MetricsRegistry) -> None:
        """A fresh store over the same directory sees earlier documents."""
        async with ProtoDB(data_dir, metrics=metrics_registry) as store:
            users = await store.model(user_definition())
            await users.create_many([{"name": "Alice"}, {"name": "Bob"}])

        async with ProtoDB(data_dir, metrics=metrics_registry) as store:
            users = await store.model(user_definition())
            assert sorted(u["name"] for u in await users.find_all()) == ["Alice", "Bob"]
            assert store.config.storage.data_dir == data_dir

    @pytest.mark.asyncio
    async def test_unknown_adapter(self, data_dir: Path, metrics_registry: MetricsRegistry) -> None:
        """Adapters other than json are rejected on connect."""
        storage = StorageConfig.model_construct(
            adapter="postgres", data_dir=data_dir, fsync=False, indent=2
        )
        store = ProtoDB(Config(storage=storage), metrics=metrics_registry)

        with pytest.raises(AdapterError, match="postgres"):
            await store.connect()
        assert not store.is_connected
