"""SQL executor for KWDB statements.

This module classifies statements as reads or writes, refuses statements
sent down the wrong path, executes them on a connection borrowed from the
PoolManager under a deadline, and converts rows into JSON-compatible
records.
"""

import asyncio
import datetime
import decimal
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias, TypeVar

import asyncpg

from kwdb_mcp.config.settings import QueryConfig
from kwdb_mcp.db.pool import PoolManager
from kwdb_mcp.models.errors import (
    DatabaseError,
    ExecutionTimeoutError,
    KwdbMcpError,
    OperationNotAllowedError,
)
from kwdb_mcp.observability.metrics import metrics
from kwdb_mcp.services.query_classifier import classify_query

T = TypeVar("T")

RecordValue: TypeAlias = None | bool | int | float | str | list["RecordValue"] | dict[str, "RecordValue"]
Record: TypeAlias = dict[str, RecordValue]

READ_TIMEOUT_MESSAGE = "Query timeout: the query took too long to execute"
WRITE_TIMEOUT_MESSAGE = "Write operation timeout: the operation took too long to complete"


class QueryExecutor:
    """Executes classified statements against the shared pool.

    Reads and writes are kept apart: ``execute_query`` refuses anything
    classified as a write and ``execute_write_query`` refuses anything else.
    Neither retries a statement; connection recovery happens only inside
    PoolManager.get_connection.

    Example:
        >>> executor = QueryExecutor(pool_manager, QueryConfig())
        >>> rows = await executor.execute_query("SELECT ts, value FROM sensors LIMIT 5")
        >>> affected = await executor.execute_write_query("DELETE FROM sensors WHERE id = 1")
    """

    def __init__(self, pool_manager: PoolManager, query_config: QueryConfig) -> None:
        """Initialize the executor.

        Args:
            pool_manager: Pool manager that owns the database connections.
            query_config: Read and write deadlines.
        """
        self.pool_manager = pool_manager
        self.query_config = query_config

    async def execute_query(
        self,
        sql: str,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> list[Record]:
        """Execute a read statement and return its rows.

        Args:
            sql: SELECT, SHOW, EXPLAIN or any other non-write statement.
            timeout: Deadline in seconds covering borrow and execution
                (uses ``read_timeout`` if None).

        Returns:
            list: One record per row, in the order the driver returned them.

        Raises:
            OperationNotAllowedError: If the statement is classified as a write.
            ExecutionTimeoutError: If the deadline is exceeded.
            DatabaseError: If the database rejects the statement.
            PoolNotInitializedError: If the pool was never initialized.
            DatabaseConnectionError: If no healthy connection can be obtained.
        """
        is_write, operation = classify_query(sql)
        if is_write:
            metrics.increment_statement_rejected(path="read", operation=operation or "")
            raise OperationNotAllowedError(
                message=f"write operation not allowed in read-query: {operation}",
                details={"operation": operation},
            )

        rows = await self._run(
            lambda conn: conn.fetch(sql),
            sql=sql,
            path="read",
            timeout=timeout or self.query_config.read_timeout,
            timeout_message=READ_TIMEOUT_MESSAGE,
        )
        return [to_record(row) for row in rows]

    async def execute_write_query(
        self,
        sql: str,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> int:
        """Execute a DML or DDL statement and return the affected row count.

        The statement is sent exactly once. If the deadline expires the
        statement may still have been applied by the server.

        Args:
            sql: INSERT, UPDATE, DELETE, DROP, CREATE, ALTER, TRUNCATE, GRANT
                or REVOKE statement.
            timeout: Deadline in seconds (uses ``write_timeout`` if None).

        Returns:
            int: Rows affected as reported by the command tag, 0 for DDL.

        Raises:
            OperationNotAllowedError: If the statement is not classified as a write.
            ExecutionTimeoutError: If the deadline is exceeded.
            DatabaseError: If the database rejects the statement.
        """
        is_write, _ = classify_query(sql)
        if not is_write:
            metrics.increment_statement_rejected(path="write", operation="READ")
            raise OperationNotAllowedError(
                message=(
                    "not a write operation: expected INSERT, UPDATE, DELETE, "
                    "CREATE, DROP, ALTER, etc"
                ),
            )

        status = await self._run(
            lambda conn: conn.execute(sql),
            sql=sql,
            path="write",
            timeout=timeout or self.query_config.write_timeout,
            timeout_message=WRITE_TIMEOUT_MESSAGE,
        )
        return parse_affected_rows(status)

    async def fetch_rows(self, sql: str, *args: Any) -> list[Record]:
        """Run an internal metadata query with bind parameters.

        Unlike ``execute_query`` the statement is not classified; callers
        only pass fixed catalog queries.
        """
        rows = await self._run(
            lambda conn: conn.fetch(sql, *args),
            sql=sql,
            path="metadata",
            timeout=self.query_config.read_timeout,
            timeout_message=READ_TIMEOUT_MESSAGE,
        )
        return [to_record(row) for row in rows]

    async def fetch_value(self, sql: str, *args: Any) -> RecordValue:
        """Run an internal metadata query and return the first column of the first row."""
        value = await self._run(
            lambda conn: conn.fetchval(sql, *args),
            sql=sql,
            path="metadata",
            timeout=self.query_config.read_timeout,
            timeout_message=READ_TIMEOUT_MESSAGE,
        )
        return to_record_value(value)

    async def _run(
        self,
        operation: Callable[[Any], Awaitable[T]],
        *,
        sql: str,
        path: str,
        timeout: float,  # noqa: ASYNC109
        timeout_message: str,
    ) -> T:
        started = time.perf_counter()
        try:
            return await asyncio.wait_for(
                self.pool_manager.execute_with_connection(operation),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise ExecutionTimeoutError(
                message=timeout_message,
                details={
                    "timeout_seconds": timeout,
                    "sql": sql[:200],  # Include truncated SQL for debugging
                },
            ) from e
        except KwdbMcpError:
            # Pool errors are already classified
            raise
        except asyncpg.PostgresError as e:
            raise DatabaseError(
                message=f"Database query failed: {e!s}",
                details={
                    "error_code": getattr(e, "sqlstate", None),
                    "error_message": str(e),
                    "sql": sql[:200],
                },
            ) from e
        except Exception as e:
            raise DatabaseError(
                message=f"Unexpected error during query execution: {e!s}",
                details={
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "sql": sql[:200],
                },
            ) from e
        finally:
            metrics.observe_query_duration(path, time.perf_counter() - started)


def parse_affected_rows(status: str | None) -> int:
    """Extract the row count from a command tag such as ``INSERT 0 3``.

    Tags without a trailing count (``CREATE TABLE``, ``GRANT``) yield 0.
    """
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


def to_record(row: Any) -> Record:
    """Convert a driver row into a record, preserving column order."""
    return {key: to_record_value(value) for key, value in row.items()}


def to_record_value(value: Any) -> RecordValue:
    """Convert a single column value into a JSON-compatible record value.

    - bytes: decoded as UTF-8 text, invalid sequences replaced
    - datetime types: ISO 8601 strings
    - timedelta: str()
    - Decimal: float
    - UUID: str
    - lists/tuples/dicts: converted recursively
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")

    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()

    if isinstance(value, datetime.timedelta):
        return str(value)

    if isinstance(value, decimal.Decimal):
        return float(value)

    if isinstance(value, uuid.UUID):
        return str(value)

    if isinstance(value, (list, tuple)):
        return [to_record_value(v) for v in value]

    if isinstance(value, dict):
        return {str(k): to_record_value(v) for k, v in value.items()}

    # Ranges, network addresses and other driver types
    return str(value)
