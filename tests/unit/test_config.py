"""Unit tests for configuration module."""

from __future__ import annotations

from pathlib import Path

import pytest

from protodb.infrastructure.config import Config, ObservabilityConfig, StorageConfig, get_config


@pytest.mark.unit
class TestConfig:
    """Tests for Config class."""

    def test_default_config(self) -> None:
        """Test default configuration values."""
        config = Config()

        assert config.storage.adapter == "json"
        assert config.storage.data_dir == Path("./data")
        assert config.storage.fsync is True
        assert config.storage.indent == 2
        assert config.observability.log_level == "INFO"
        assert config.observability.otel_service_name == "protodb"

    def test_for_data_dir(self, temp_dir: Path) -> None:
        """Test building a configuration for a data directory."""
        config = Config.for_data_dir(temp_dir / "db")

        assert config.storage.data_dir == temp_dir / "db"
        assert config.storage.adapter == "json"

    def test_ensure_directories(self, temp_dir: Path) -> None:
        """Test that ensure_directories creates the data directory."""
        config = Config(storage=StorageConfig(data_dir=temp_dir / "nested" / "data"))

        config.ensure_directories()

        assert config.storage.data_dir.is_dir()

    def test_invalid_adapter(self) -> None:
        """Test that unknown adapters are rejected."""
        with pytest.raises(ValueError):
            StorageConfig(adapter="postgres")  # type: ignore

    def test_invalid_indent(self) -> None:
        """Test that indentation is bounded."""
        with pytest.raises(ValueError):
            StorageConfig(indent=-1)

    def test_invalid_log_format(self) -> None:
        """Test that only json and console formats are accepted."""
        with pytest.raises(ValueError):
            ObservabilityConfig(log_format="xml")  # type: ignore

    def test_environment_overrides(
        self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test PROTODB_ environment variables with nested delimiter."""
        monkeypatch.setenv("PROTODB_STORAGE__DATA_DIR", str(temp_dir / "env"))
        monkeypatch.setenv("PROTODB_STORAGE__FSYNC", "false")
        monkeypatch.setenv("PROTODB_OBSERVABILITY__LOG_LEVEL", "DEBUG")

        config = Config()

        assert config.storage.data_dir == temp_dir / "env"
        assert config.storage.fsync is False
        assert config.observability.log_level == "DEBUG"


@pytest.mark.unit
class TestConfigSingleton:
    """Tests for get_config singleton."""

    def test_get_config_returns_same_instance(self) -> None:
        """Test that get_config returns the same instance."""
        config1 = get_config()
        config2 = get_config()
        assert config1 is config2
