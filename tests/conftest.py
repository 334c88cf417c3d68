"""Pytest configuration and shared fixtures.

This module provides shared fixtures and asyncpg fakes for all tests.
"""

import os
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from kwdb_mcp.config.settings import reset_settings


@pytest.fixture(autouse=True)
def reset_config() -> None:
    """Reset global settings before each test."""
    reset_settings()


@pytest.fixture(autouse=True)
def disable_metrics_for_tests():
    """Disable metrics for tests to avoid port conflicts."""
    os.environ["OBSERVABILITY_METRICS_ENABLED"] = "false"
    yield
    # Clean up
    if "OBSERVABILITY_METRICS_ENABLED" in os.environ:
        del os.environ["OBSERVABILITY_METRICS_ENABLED"]


def make_connection(rows: list[dict[str, Any]] | None = None, status: str = "SELECT 1") -> MagicMock:
    """Create a mock asyncpg connection.

    Rows are plain dicts; the executor only needs ``items()`` from a record.
    """
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=1)
    conn.fetch = AsyncMock(return_value=rows or [])
    conn.execute = AsyncMock(return_value=status)
    conn.close = AsyncMock()
    conn.is_closed = MagicMock(return_value=False)
    conn.age = MagicMock(return_value=0.0)
    return conn


class FakeAcquire:
    """Mimics asyncpg's PoolAcquireContext: awaitable and an async context manager."""

    def __init__(self, pool: "FakePool") -> None:
        self._pool = pool
        self._conn: Any = None

    def __await__(self):
        return self._pool._acquire().__await__()

    async def __aenter__(self) -> Any:
        self._conn = await self._pool._acquire()
        return self._conn

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._pool.release(self._conn)


class FakePool:
    """In-memory stand-in for asyncpg.Pool.

    An unhealthy pool refuses every acquire, which is what a health check
    sees when the database is down.
    """

    def __init__(
        self,
        connection: MagicMock | None = None,
        healthy: bool = True,
        size: int = 1,
        idle: int = 0,
        max_size: int = 25,
    ) -> None:
        self.connection = connection or make_connection()
        self.healthy = healthy
        self.size = size
        self.idle = idle
        self.max_size = max_size
        self.acquire_count = 0
        self.release = AsyncMock()
        self.close = AsyncMock()
        self.terminate = MagicMock()

    def acquire(self) -> FakeAcquire:
        return FakeAcquire(self)

    async def _acquire(self) -> MagicMock:
        self.acquire_count += 1
        if not self.healthy:
            raise ConnectionRefusedError("connection refused")
        return self.connection

    def get_size(self) -> int:
        return self.size

    def get_idle_size(self) -> int:
        return self.idle

    def get_max_size(self) -> int:
        return self.max_size


@pytest.fixture
def mock_connection() -> MagicMock:
    return make_connection()


@pytest.fixture
def fake_pool(mock_connection: MagicMock) -> FakePool:
    return FakePool(connection=mock_connection)
