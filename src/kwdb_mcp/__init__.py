"""KWDB MCP Server - KaiwuDB for language model agents.

A Model Context Protocol server that exposes a KWDB (KaiwuDB) time-series
database through read and write query tools, metadata resources and
guidance prompts, backed by a lazily opened, self-healing connection pool.
"""

__version__ = "0.1.0"

from kwdb_mcp.config.settings import Settings, get_settings
from kwdb_mcp.models.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCode,
    ExecutionTimeoutError,
    KwdbMcpError,
    OperationNotAllowedError,
    PoolNotInitializedError,
)
from kwdb_mcp.models.pool import PoolStats

__all__ = [
    "__version__",
    # Config
    "Settings",
    "get_settings",
    # Models
    "PoolStats",
    # Errors
    "KwdbMcpError",
    "ConfigError",
    "PoolNotInitializedError",
    "DatabaseConnectionError",
    "OperationNotAllowedError",
    "ExecutionTimeoutError",
    "DatabaseError",
    "ErrorCode",
]
