"""Pytest configuration and fixtures for protodb tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from protodb.adapters.outbound import JsonAdapter
from protodb.application import ProtoDB
from protodb.infrastructure.config import Config, StorageConfig
from protodb.infrastructure.metrics import MetricsRegistry


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def data_dir(temp_dir: Path) -> Path:
    """Directory holding the collection files of a test store."""
    return temp_dir / "data"


@pytest.fixture
def test_config(data_dir: Path) -> Config:
    """Provide a test configuration with a temporary data directory."""
    return Config(
        storage=StorageConfig(
            data_dir=data_dir,
            fsync=False,  # Faster for tests
        ),
    )


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest_asyncio.fixture
async def adapter(
    data_dir: Path, metrics_registry: MetricsRegistry
) -> AsyncGenerator[JsonAdapter, None]:
    """Provide a connected JSON adapter."""
    json_adapter = JsonAdapter(data_dir, fsync=False, metrics=metrics_registry)
    await json_adapter.connect()
    yield json_adapter
    await json_adapter.disconnect()


@pytest_asyncio.fixture
async def db(
    test_config: Config, metrics_registry: MetricsRegistry
) -> AsyncGenerator[ProtoDB, None]:
    """Provide a connected store."""
    store = ProtoDB(test_config, metrics=metrics_registry)
    await store.connect()
    yield store
    await store.disconnect()


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
