"""Prometheus metrics collector for KWDB MCP Server.

This module implements metrics collection using prometheus_client,
tracking tool requests, statement execution, and connection pool health.
"""

from collections.abc import Callable

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from kwdb_mcp.models.pool import PoolStats


class MetricsCollector:
    """Centralized metrics collector using Prometheus client.

    This class provides singleton access to all application metrics.

    Metrics Categories:
    - Tool metrics: Request counts and durations per tool
    - Security metrics: Statements rejected by read/write classification
    - Pool metrics: Connection gauges and reinitializations

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.increment_tool_request(tool="read-query", status="success")
        >>> metrics.observe_query_duration("read", 0.12)
    """

    _instance: "MetricsCollector | None" = None

    def __new__(cls) -> "MetricsCollector":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize_metrics()
        return cls._instance

    def _initialize_metrics(self) -> None:
        # Tool Metrics
        self.tool_requests: Counter = Counter(
            "kwdb_mcp_tool_requests_total",
            "Total number of tool requests processed",
            labelnames=["tool", "status"],
        )

        self.query_duration: Histogram = Histogram(
            "kwdb_mcp_query_duration_seconds",
            "Statement execution duration in seconds, including connection borrow",
            labelnames=["path"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
        )

        # Security Metrics
        self.statements_rejected: Counter = Counter(
            "kwdb_mcp_statements_rejected_total",
            "Statements rejected for being sent to the wrong tool",
            labelnames=["path", "operation"],
        )

        # Pool Metrics
        self.pool_connections: Gauge = Gauge(
            "kwdb_mcp_pool_connections",
            "Connection pool connections by state",
            labelnames=["state"],
        )

        self.pool_reinitializations: Counter = Counter(
            "kwdb_mcp_pool_reinitializations_total",
            "Number of times the pool was rebuilt after a failed health check",
        )

        self.pool_health_check_failures: Counter = Counter(
            "kwdb_mcp_pool_health_check_failures_total",
            "Number of failed health check pings",
        )

    def start_metrics_server(self, port: int) -> None:
        """Start the Prometheus metrics HTTP server.

        Args:
            port: Port number to listen on for metrics scraping.
        """
        start_http_server(port)

    def increment_tool_request(self, tool: str, status: str) -> None:
        """Increment tool request counter.

        Args:
            tool: Tool name (read-query, write-query).
            status: Outcome (success, error, timeout, rejected).
        """
        self.tool_requests.labels(tool=tool, status=status).inc()

    def observe_query_duration(self, path: str, duration: float) -> None:
        """Record statement duration for the read, write or metadata path."""
        self.query_duration.labels(path=path).observe(duration)

    def increment_statement_rejected(self, path: str, operation: str) -> None:
        """Increment rejection counter.

        Args:
            path: Which path rejected the statement ("read" or "write").
            operation: Classified operation, or "READ" for read statements.
        """
        self.statements_rejected.labels(path=path, operation=operation).inc()

    def increment_pool_reinitialization(self) -> None:
        """Count a pool rebuilt after a failed health check."""
        self.pool_reinitializations.inc()

    def increment_health_check_failure(self) -> None:
        """Count a failed health check ping, including the one after a rebuild."""
        self.pool_health_check_failures.inc()

    def bind_pool_stats(self, source: Callable[[], PoolStats]) -> None:
        """Read the connection gauges from ``source`` on every collection.

        The gauges then always reflect the live pool instead of the last
        snapshot somebody asked for.

        Args:
            source: Callable returning the current pool statistics, such as
                ``PoolManager.get_stats``. Pass ``PoolStats`` to report zeros.

        Example:
            >>> metrics.bind_pool_stats(pool_manager.get_stats)
        """
        self.pool_connections.labels(state="open").set_function(
            lambda: source().open_connections
        )
        self.pool_connections.labels(state="idle").set_function(lambda: source().idle)
        self.pool_connections.labels(state="in_use").set_function(lambda: source().in_use)


# Singleton instance
metrics = MetricsCollector()
