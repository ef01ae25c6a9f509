"""Structured logging module."""

from .config import (
    LogContext,
    ServiceInfo,
    bind_context,
    clear_context,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_sensitive_values,
    set_correlation_id,
    strip_query,
    unbind_context,
)

__all__ = [
    "LogContext",
    "ServiceInfo",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "redact_sensitive_values",
    "set_correlation_id",
    "strip_query",
    "unbind_context",
]
