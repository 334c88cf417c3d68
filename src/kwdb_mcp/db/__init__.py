"""Database connection management.

This package provides the lazily opened, health-checked connection pool.
Catalog lookups live in ``kwdb_mcp.db.introspection`` and are imported from
there directly, since they build on the service layer.
"""

from kwdb_mcp.db.pool import PoolManager, TrackedConnection, close_pool

__all__ = [
    "PoolManager",
    "TrackedConnection",
    "close_pool",
]
