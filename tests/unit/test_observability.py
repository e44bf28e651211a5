"""Unit tests for metrics and tracing helpers."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from protodb.infrastructure.metrics import MetricsRegistry
from protodb.infrastructure.tracing import get_tracer, trace_span


@pytest.mark.unit
class TestMetricsRegistry:
    """Tests for MetricsRegistry."""

    def test_metrics_registered(self) -> None:
        """Metrics are exported under the protodb_ namespace."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry=registry)

        metrics.operations_total.labels(operation="insert", collection="users", status="success").inc()
        metrics.documents.labels(collection="users").set(3)

        assert registry.get_sample_value(
            "protodb_operations_total",
            {"operation": "insert", "collection": "users", "status": "success"},
        ) == 1
        assert registry.get_sample_value("protodb_documents", {"collection": "users"}) == 3

    def test_separate_registries(self) -> None:
        """Independent registries do not clash on metric names."""
        MetricsRegistry(registry=CollectorRegistry())
        MetricsRegistry(registry=CollectorRegistry())

    def test_latency_histogram(self) -> None:
        """Operation latency histograms accept observations."""
        registry = CollectorRegistry()
        metrics = MetricsRegistry(registry=registry)

        metrics.operation_latency_seconds.labels(operation="find").observe(0.002)

        assert registry.get_sample_value(
            "protodb_operation_latency_seconds_count", {"operation": "find"}
        ) == 1


@pytest.mark.unit
class TestTracing:
    """Tests for trace_span."""

    def test_span_without_setup(self) -> None:
        """Spans work with the default (no-op) provider."""
        with trace_span("protodb.test", {"collection": "users", "documents": 2}) as span:
            assert span is not None

    def test_tracer_cached(self) -> None:
        """get_tracer returns the same tracer."""
        assert get_tracer() is get_tracer()

    def test_none_attributes_skipped(self) -> None:
        """None-valued attributes do not break span creation."""
        with trace_span("protodb.test", {"collection": None, "documents": 0}):
            pass

    def test_exception_propagates(self) -> None:
        """Errors inside a span reach the caller unchanged."""
        with pytest.raises(KeyError):
            with trace_span("protodb.failing"):
                raise KeyError("users")
