"""Data models module."""

from kwdb_mcp.models.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCode,
    ErrorDetail,
    ExecutionTimeoutError,
    KwdbMcpError,
    OperationNotAllowedError,
    PoolNotInitializedError,
    ValidationError,
)
from kwdb_mcp.models.pool import PoolStats
from kwdb_mcp.models.schema import (
    BASE_TABLE,
    TIME_SERIES_TABLE,
    DatabaseInfo,
    ExampleQueries,
    IndexInfo,
    PartitionInfo,
    ProductInfo,
    TableMetadata,
    TableSchema,
)

__all__ = [
    # Metadata models
    "BASE_TABLE",
    "TIME_SERIES_TABLE",
    "DatabaseInfo",
    "ExampleQueries",
    "IndexInfo",
    "PartitionInfo",
    "ProductInfo",
    "TableMetadata",
    "TableSchema",
    # Pool models
    "PoolStats",
    # Error models
    "ErrorCode",
    "ErrorDetail",
    "KwdbMcpError",
    "ConfigError",
    "ValidationError",
    "PoolNotInitializedError",
    "OperationNotAllowedError",
    "DatabaseError",
    "DatabaseConnectionError",
    "ExecutionTimeoutError",
]
