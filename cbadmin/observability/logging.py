"""
Contextual logging utilities for CBADMIN.

Log records emitted through get_logger() carry the current correlation id
and operation context (bucket, service, operation), both kept in
contextvars so concurrent tasks do not leak context into each other.
"""

import contextvars
import logging
import uuid
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cbadmin_correlation_id", default=None
)

_operation_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "cbadmin_operation_context", default=None
)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set a correlation ID in the current context.

    Args:
        correlation_id: Optional correlation ID (generates new one if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def set_operation_context(
    bucket_name: str | None = None, **kwargs: Any
) -> contextvars.Token[dict[str, Any] | None]:
    """
    Set operation context for logging.

    Args:
        bucket_name: Bucket the current work targets
        **kwargs: Additional context (service, scope_name, collection_name, etc.)

    Returns:
        Token that restores the previous context when passed to
        clear_operation_context()
    """
    return _operation_context.set({"bucket_name": bucket_name, **kwargs})


def clear_operation_context(
    token: contextvars.Token[dict[str, Any] | None] | None = None,
) -> None:
    if token is None:
        _operation_context.set(None)
    else:
        _operation_context.reset(token)


def get_logging_context() -> dict[str, Any]:
    """Return the correlation id and operation context as one dictionary."""
    context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    operation_context = _operation_context.get()
    if operation_context:
        context.update(operation_context)

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the current logging context to each record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = get_logging_context()
        extra = kwargs.get("extra", {})
        if extra:
            context.update(extra)
        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.DEBUG,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log a finished cluster operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g. "buckets.get_bucket")
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context (status_code, bucket_name, ...)
    """
    log_context = get_logging_context()
    log_context.update({"operation": operation, "success": success})
    if duration_ms is not None:
        log_context["duration_ms"] = round(duration_ms, 2)
    if context:
        log_context.update(context)

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=log_context)
