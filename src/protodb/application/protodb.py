"""ProtoDB - the store-level entry point.

ProtoDB owns the storage adapter and the registry of models. Models are
looked up by name at relation-resolution time, so two models may refer to
each other regardless of the order in which they are defined.

Usage:
    from protodb import ModelDefinition, ProtoDB

    async with ProtoDB("./data") as db:
        users = await db.model(ModelDefinition(name="User", collection="users", schema={...}))
        await users.create({...})
"""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING

from protodb.adapters.outbound.json_adapter import JsonAdapter
from protodb.application.model import Model, ModelDefinition
from protodb.domain.errors import AdapterError, ProtoDBError
from protodb.infrastructure.config import Config, StorageConfig, get_config
from protodb.infrastructure.logging import get_logger
from protodb.infrastructure.metrics import MetricsRegistry, get_metrics

if TYPE_CHECKING:
    from protodb.ports.outbound.storage_adapter import StorageAdapter

logger = get_logger(__name__, component="protodb")


class ProtoDB:
    """Connection to one document store and registry of its models.

    Implements the ModelProvider port consumed by relation resolution.
    """

    def __init__(
        self,
        config: Config | str | Path | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the store (no I/O happens before connect()).

        Args:
            config: A Config, a data directory, or None for the global config.
            metrics: Metrics registry (defaults to the global one).
        """
        if config is None:
            config = get_config()
        elif not isinstance(config, Config):
            config = Config.for_data_dir(config)

        self._config = config
        self._metrics = metrics or get_metrics()
        self._adapter: StorageAdapter | None = None
        self._models: dict[str, Model] = {}
        self._connected = False

    @property
    def config(self) -> Config:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _create_adapter(self, storage: StorageConfig) -> StorageAdapter:
        if storage.adapter == "json":
            return JsonAdapter(
                storage.data_dir,
                fsync=storage.fsync,
                indent=storage.indent,
                metrics=self._metrics,
            )
        raise AdapterError(storage.adapter, f"Unknown adapter: {storage.adapter}")

    async def connect(self) -> None:
        """Open the store and re-initialize previously defined models."""
        if self._connected:
            return

        adapter = self._create_adapter(self._config.storage)
        await adapter.connect()
        self._adapter = adapter
        self._connected = True

        for model in self._models.values():
            model.attach(adapter)
            await model.init()

        logger.info(
            "protodb_connected",
            adapter=self._config.storage.adapter,
            data_dir=str(self._config.storage.data_dir),
            models=len(self._models),
        )

    async def disconnect(self) -> None:
        """Flush pending writes and release the adapter."""
        if not self._connected or self._adapter is None:
            return
        await self._adapter.disconnect()
        self._adapter = None
        self._connected = False
        logger.info("protodb_disconnected")

    async def model(self, definition: ModelDefinition) -> Model:
        """Register a model and create its collection.

        Returns the already registered model when the name is taken.

        Raises:
            ProtoDBError: If the store is not connected.
        """
        existing = self._models.get(definition.name)
        if existing is not None:
            return existing

        adapter = self.get_adapter()
        model = Model(definition, adapter, registry=self, metrics=self._metrics)
        await model.init()
        self._models[definition.name] = model
        logger.debug("model_registered", model=model.name, collection=model.collection)
        return model

    def get_model(self, name: str) -> Model | None:
        return self._models.get(name)

    @property
    def models(self) -> list[Model]:
        return list(self._models.values())

    def get_adapter(self) -> StorageAdapter:
        if self._adapter is None:
            raise ProtoDBError("Not connected. Call connect() before defining models.")
        return self._adapter

    async def __aenter__(self) -> ProtoDB:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.disconnect()
