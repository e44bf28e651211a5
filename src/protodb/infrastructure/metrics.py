"""Prometheus metrics for the document store."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all document store metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Operation metrics
        self.operations_total = Counter(
            "protodb_operations_total",
            "Total number of storage operations",
            ["operation", "collection", "status"],  # status: success, error
            registry=self._registry,
        )

        self.operation_latency_seconds = Histogram(
            "protodb_operation_latency_seconds",
            "Storage operation latency in seconds",
            ["operation"],  # insert, find, update, delete, ...
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
            registry=self._registry,
        )

        self.documents = Gauge(
            "protodb_documents",
            "Number of documents held per collection",
            ["collection"],
            registry=self._registry,
        )

        # Persistence metrics
        self.flushes_total = Counter(
            "protodb_flushes_total",
            "Total flush operations of the write queue",
            ["status"],
            registry=self._registry,
        )

        self.flush_latency_seconds = Histogram(
            "protodb_flush_latency_seconds",
            "Flush latency in seconds",
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5),
            registry=self._registry,
        )

        self.bytes_written_total = Counter(
            "protodb_bytes_written_total",
            "Total bytes written to collection files",
            registry=self._registry,
        )

        # Index metrics
        self.unique_violations_total = Counter(
            "protodb_unique_violations_total",
            "Total unique constraint violations",
            ["collection", "field"],
            registry=self._registry,
        )

        # Relation metrics
        self.relation_queries_total = Counter(
            "protodb_relation_queries_total",
            "Total batched queries issued while resolving relations",
            ["relation_type"],
            registry=self._registry,
        )

        self.info = Info(
            "protodb",
            "Document store information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)

    from protodb import __version__
    _metrics.info.info({
        "version": __version__,
    })

    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
