"""Observability module for KWDB MCP Server.

This module provides:
- Prometheus metrics collection
- Structured logging on stderr with credential redaction
- Request tracing and context propagation

Example:
    >>> from kwdb_mcp.observability import metrics, configure_logging, request_context
    >>>
    >>> configure_logging(level="INFO", log_format="json")
    >>> metrics.start_metrics_server(9090)
    >>>
    >>> async with request_context() as request_id:
    ...     metrics.increment_tool_request(tool="read-query", status="success")
"""

from kwdb_mcp.observability.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    TextFormatter,
    configure_logging,
    get_logger,
    redact_text,
)
from kwdb_mcp.observability.metrics import MetricsCollector, metrics
from kwdb_mcp.observability.tracing import (
    TracingLogger,
    generate_request_id,
    get_request_id,
    get_tracing_logger,
    request_context,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "metrics",
    # Logging
    "configure_logging",
    "get_logger",
    "redact_text",
    "JSONFormatter",
    "TextFormatter",
    "SensitiveDataFilter",
    # Tracing
    "request_context",
    "generate_request_id",
    "get_request_id",
    "TracingLogger",
    "get_tracing_logger",
]
