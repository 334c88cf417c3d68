"""Service layer for KWDB MCP Server.

This module provides statement classification and execution on top of
the connection pool.
"""

from kwdb_mcp.services.query_classifier import (
    add_limit_to_query,
    classify_query,
    is_select_without_limit,
)
from kwdb_mcp.services.sql_executor import QueryExecutor, parse_affected_rows, to_record

__all__ = [
    "QueryExecutor",
    "classify_query",
    "is_select_without_limit",
    "add_limit_to_query",
    "parse_affected_rows",
    "to_record",
]
