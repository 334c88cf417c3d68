"""Configuration management module."""

from kwdb_mcp.config.settings import (
    DatabaseConfig,
    ObservabilityConfig,
    PoolConfig,
    QueryConfig,
    ServerConfig,
    Settings,
    get_settings,
    mask_dsn,
    reset_settings,
)

__all__ = [
    "DatabaseConfig",
    "ObservabilityConfig",
    "PoolConfig",
    "QueryConfig",
    "ServerConfig",
    "Settings",
    "get_settings",
    "mask_dsn",
    "reset_settings",
]
