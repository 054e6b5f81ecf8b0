"""
Observability Module

Structured logging and metrics. Both are sinks passed into the
engines; neither participates in control flow.
"""

from lufykms.observability.logging import (
    BufferHandler,
    ConsoleHandler,
    LogLevel,
    StructuredLogger,
    configure_logging,
    get_logger,
)
from lufykms.observability.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsCollector,
    Timer,
    get_metrics_collector,
)

__all__ = [
    # Logging
    "BufferHandler",
    "ConsoleHandler",
    "LogLevel",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    # Metrics
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsCollector",
    "Timer",
    "get_metrics_collector",
]
