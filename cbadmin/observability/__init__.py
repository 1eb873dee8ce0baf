"""
Observability components.

Provides contextual logging, metrics collection, and ping diagnostics.
"""

from .health import EndpointPingReport, PingReport, PingState
from .logging import (
    ContextualLoggerAdapter,
    clear_correlation_id,
    clear_operation_context,
    get_correlation_id,
    get_logger,
    get_logging_context,
    log_operation,
    set_correlation_id,
    set_operation_context,
)
from .metrics import (
    MetricsCollector,
    OperationMetrics,
    get_metrics_collector,
    record_operation,
    timed_operation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "set_operation_context",
    "clear_operation_context",
    "get_logging_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
    # Ping diagnostics
    "PingState",
    "EndpointPingReport",
    "PingReport",
]
