"""Infrastructure layer - cross-cutting concerns."""

from protodb.infrastructure.config import Config, StorageConfig, get_config
from protodb.infrastructure.logging import configure_logging, setup_logging, get_logger
from protodb.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from protodb.infrastructure.tracing import configure_tracing, setup_tracing, get_tracer, trace_span

__all__ = [
    "Config",
    "StorageConfig",
    "get_config",
    "setup_logging",
    "configure_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "configure_tracing",
    "get_tracer",
    "trace_span",
]
