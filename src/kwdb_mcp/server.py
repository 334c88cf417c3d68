"""FastMCP server for KWDB.

This module wires the pool manager, query executor and metadata service
into a FastMCP application exposing:

- Tools: ``read-query`` and ``write-query``. Both always return an
  envelope ``{status, type, data, error}``; failures never escape as
  protocol faults.
- Resources: product info, database and table listings, per-database
  info and per-table schema.
- Prompts: the syntax guide, the database description and the use-case
  guides.
"""

import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ResourceError
from mcp.types import PromptMessage, TextContent, ToolAnnotations

from kwdb_mcp.config.settings import Settings, get_settings
from kwdb_mcp.db.introspection import MetadataService
from kwdb_mcp.db.pool import PoolManager
from kwdb_mcp.models.errors import (
    ErrorCode,
    ExecutionTimeoutError,
    KwdbMcpError,
    OperationNotAllowedError,
    PoolNotInitializedError,
)
from kwdb_mcp.models.pool import PoolStats
from kwdb_mcp.models.schema import DatabaseInfo, ExampleQueries, TableMetadata, TableSchema
from kwdb_mcp.observability.metrics import metrics
from kwdb_mcp.observability.tracing import get_tracing_logger, request_context
from kwdb_mcp.prompts.guides import (
    DB_DESCRIPTION_INTRO,
    USE_CASE_GUIDES,
    UseCaseGuide,
    build_syntax_guide,
    db_description,
)
from kwdb_mcp.services.query_classifier import add_limit_to_query, is_select_without_limit
from kwdb_mcp.services.sql_executor import QueryExecutor, Record

logger = get_tracing_logger(__name__)

SERVER_NAME = "KWDB (KaiwuDB) MCP Server"
SERVER_INSTRUCTIONS = (
    "This server allows you to interact with KWDB (KaiwuDB) databases using SQL. "
    "Use read-query for SELECT, SHOW and EXPLAIN statements and write-query for "
    "INSERT, UPDATE, DELETE and DDL. kwdb://databases and kwdb://tables list what "
    "exists; table schemas are available as kwdb://table/{table_name} resources."
)

READ_QUERY_DESCRIPTION = (
    "Execute SELECT, SHOW, EXPLAIN and other read-only queries on KWDB (KaiwuDB). "
    "SELECT queries without a LIMIT clause will automatically have LIMIT {limit} "
    "added to prevent large result sets."
)
WRITE_QUERY_DESCRIPTION = (
    "Execute data modification queries including DML and DDL operations on KWDB (KaiwuDB)"
)


@dataclass
class ServerState:
    """Components created by the lifespan and shared by every request."""

    settings: Settings
    pool_manager: PoolManager
    executor: QueryExecutor
    metadata: MetadataService


_state: ServerState | None = None


def _require_state() -> ServerState:
    if _state is None:
        raise PoolNotInitializedError()
    return _state


@asynccontextmanager
async def lifespan(_server: FastMCP) -> AsyncIterator[None]:
    """Server lifespan context manager.

    Configures the pool without contacting the database, so the server
    comes up even while KWDB is unreachable. The pool is closed on exit.

    Raises:
        ConfigError: If no connection string is configured.
    """
    global _state

    settings = get_settings()
    logger.info("Starting KWDB MCP Server...")

    if settings.observability.metrics_enabled:
        metrics.start_metrics_server(settings.observability.metrics_port)
        logger.info(f"Metrics server started on port {settings.observability.metrics_port}")

    pool_manager = PoolManager()
    await pool_manager.initialize(settings.database.dsn, settings.pool_config())
    metrics.bind_pool_stats(pool_manager.get_stats)

    executor = QueryExecutor(pool_manager, settings.query)
    _state = ServerState(
        settings=settings,
        pool_manager=pool_manager,
        executor=executor,
        metadata=MetadataService(executor),
    )

    try:
        yield
    finally:
        _state = None
        await pool_manager.close()
        metrics.bind_pool_stats(PoolStats)
        logger.info("KWDB MCP Server stopped")


mcp = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS, lifespan=lifespan)


def _error_payload(error: KwdbMcpError, **context: Any) -> dict[str, Any]:
    payload = error.to_error_detail().to_dict()
    payload.update(context)
    return payload


def _internal_error(error: Exception, **context: Any) -> dict[str, Any]:
    return {"code": str(ErrorCode.INTERNAL_ERROR), "message": str(error), **context}


def _status_label(error: KwdbMcpError) -> str:
    if isinstance(error, ExecutionTimeoutError):
        return "timeout"
    if isinstance(error, OperationNotAllowedError):
        return "rejected"
    return "error"


async def read_query(sql: str) -> dict[str, Any]:
    """Execute a read-only statement and return a query_result envelope.

    A SELECT without LIMIT gets ``LIMIT n`` appended before execution; the
    statement as sent and as received are both reported in the metadata.

    Args:
        sql: SQL query to execute. Only read operations like SELECT, SHOW,
            EXPLAIN are allowed.

    Returns:
        dict: ``{status, type, data, error}`` envelope.
    """
    async with request_context():
        original_sql = sql
        try:
            state = _require_state()
            if is_select_without_limit(sql):
                sql = add_limit_to_query(sql, state.settings.query.auto_limit)
            rows = await state.executor.execute_query(sql)
        except KwdbMcpError as e:
            metrics.increment_tool_request(tool="read-query", status=_status_label(e))
            logger.warning(f"read-query failed: {e.message}")
            return {
                "status": "error",
                "type": "query_result",
                "data": None,
                "error": _error_payload(e, query=sql, original_query=original_sql),
            }
        except Exception as e:
            metrics.increment_tool_request(tool="read-query", status="error")
            logger.exception(f"Unexpected error in read-query: {e!s}")
            return {
                "status": "error",
                "type": "query_result",
                "data": None,
                "error": _internal_error(e, query=sql, original_query=original_sql),
            }

        metrics.increment_tool_request(tool="read-query", status="success")
        logger.info(f"read-query returned {len(rows)} rows")
        return {
            "status": "success",
            "type": "query_result",
            "data": {
                "result_type": "table",
                "columns": list(rows[0].keys()) if rows else [],
                "rows": rows,
                "metadata": {
                    "affected_rows": 0,
                    "row_count": len(rows),
                    "query": sql,
                    "original_query": original_sql,
                    "auto_limited": sql != original_sql,
                },
            },
            "error": None,
        }


async def write_query(sql: str) -> dict[str, Any]:
    """Execute a DML or DDL statement and return a write_result envelope.

    Args:
        sql: SQL query to execute. Supports INSERT, UPDATE, DELETE, CREATE,
            DROP, ALTER and other write operations.

    Returns:
        dict: ``{status, type, data, error}`` envelope.
    """
    async with request_context():
        try:
            affected_rows = await _require_state().executor.execute_write_query(sql)
        except KwdbMcpError as e:
            metrics.increment_tool_request(tool="write-query", status=_status_label(e))
            logger.warning(f"write-query failed: {e.message}")
            return {
                "status": "error",
                "type": "write_result",
                "data": None,
                "error": _error_payload(e, query=sql),
            }
        except Exception as e:
            metrics.increment_tool_request(tool="write-query", status="error")
            logger.exception(f"Unexpected error in write-query: {e!s}")
            return {
                "status": "error",
                "type": "write_result",
                "data": None,
                "error": _internal_error(e, query=sql),
            }

        metrics.increment_tool_request(tool="write-query", status="success")
        logger.info(f"write-query affected {affected_rows} rows")
        return {
            "status": "success",
            "type": "write_result",
            "data": {
                "result_type": "write",
                "affected_rows": affected_rows,
                "metadata": {"query": sql},
            },
            "error": None,
        }


async def product_info() -> str:
    """General information about the KWDB (KaiwuDB) product, version, and capabilities."""
    try:
        info = await _require_state().metadata.get_product_info()
    except KwdbMcpError as e:
        raise ResourceError(f"failed to retrieve KWDB product information: {e.message}") from e
    return info.model_dump_json(indent=2)


async def database_info(database_name: str) -> str:
    """Information about a specific KWDB (KaiwuDB) database, including its properties."""
    try:
        info = await _require_state().metadata.get_database_info(database_name)
    except KwdbMcpError as e:
        raise ResourceError(
            f"failed to retrieve database information for '{database_name}': {e.message}"
        ) from e
    return info.model_dump_json(indent=2)


def _table_entries(tables: list[str]) -> list[dict[str, str]]:
    return [{"name": name, "uri": f"kwdb://table/{name}"} for name in tables]


async def list_databases() -> str:
    """Databases on the KWDB (KaiwuDB) server, with their info resource URIs."""
    metadata = _require_state().metadata
    try:
        databases = await metadata.get_databases()
        current = await metadata.get_current_database()
    except KwdbMcpError as e:
        raise ResourceError(f"failed to list databases: {e.message}") from e

    payload = {
        "current_database": current,
        "databases": [{"name": name, "uri": f"kwdb://db_info/{name}"} for name in databases],
    }
    return json.dumps(payload, indent=2)


async def list_tables() -> str:
    """Tables in the public schema of the connected database."""
    metadata = _require_state().metadata
    try:
        tables = await metadata.get_tables()
        current = await metadata.get_current_database()
    except KwdbMcpError as e:
        raise ResourceError(f"failed to list database tables: {e.message}") from e

    payload = {
        "database": current,
        "tables": _table_entries(tables),
    }
    return json.dumps(payload, indent=2)


async def database_tables(database_name: str) -> str:
    """Base tables of a specific KWDB (KaiwuDB) database."""
    try:
        tables = await _require_state().metadata.get_tables_for_database(database_name)
    except KwdbMcpError as e:
        raise ResourceError(
            f"failed to list tables for database '{database_name}': {e.message}"
        ) from e
    return json.dumps({"database": database_name, "tables": _table_entries(tables)}, indent=2)


async def table_schema(table_name: str) -> str:
    """Schema of a KWDB table with indexes, partitioning and example statements.

    Only the column lookup is mandatory; missing metadata or examples leave
    those fields empty.
    """
    state = _require_state()
    try:
        columns = await state.metadata.get_table_columns(table_name)
    except KwdbMcpError as e:
        raise ResourceError(f"failed to get table schema for '{table_name}': {e.message}") from e

    metadata: TableMetadata | None
    try:
        metadata = await state.metadata.get_table_metadata(table_name)
    except KwdbMcpError as e:
        logger.warning(f"Failed to get metadata for table {table_name}: {e.message}")
        metadata = None

    try:
        examples = await state.metadata.get_table_example_queries(table_name)
    except KwdbMcpError as e:
        logger.warning(f"Failed to get example queries for table {table_name}: {e.message}")
        examples = ExampleQueries()

    schema = TableSchema.build(table_name, columns, metadata, examples)
    response = {
        "status": "success",
        "type": "table_schema",
        "data": schema.model_dump(exclude_none=True),
        "error": None,
    }
    return json.dumps(response, indent=2, default=str)


def _message(role: str, text: str) -> PromptMessage:
    return PromptMessage(role=role, content=TextContent(type="text", text=text))


async def syntax_guide(database: str | None = None, table: str | None = None) -> list[PromptMessage]:
    """KWDB (KaiwuDB) syntax guide and examples.

    Table columns and database details are added when they can be looked
    up; a failed lookup simply leaves that section out.
    """
    columns: list[Record] = []
    info: DatabaseInfo | None = None

    if _state is not None:
        if table:
            try:
                columns = await _state.metadata.get_table_columns(table)
            except KwdbMcpError as e:
                logger.debug(f"Syntax guide without table section for {table}: {e.message}")
        if database:
            try:
                info = await _state.metadata.get_database_info(database)
            except KwdbMcpError as e:
                logger.debug(f"Syntax guide without database section for {database}: {e.message}")

    return [_message("user", build_syntax_guide(table, columns, info))]


async def db_description_prompt() -> list[PromptMessage]:
    """KWDB (KaiwuDB) database description and capabilities."""
    return [
        _message("user", DB_DESCRIPTION_INTRO),
        _message("assistant", db_description()),
    ]


def _use_case_prompt(guide: UseCaseGuide) -> Callable[[], Awaitable[list[PromptMessage]]]:
    async def render() -> list[PromptMessage]:
        return [
            _message("user", guide.intro),
            _message("assistant", guide.text()),
        ]

    render.__name__ = guide.name
    render.__doc__ = guide.description
    return render


def get_connection_stats() -> PoolStats:
    """Current pool statistics, all zero before startup or after shutdown."""
    if _state is None:
        return PoolStats()
    return _state.pool_manager.get_stats()


def register(server: FastMCP) -> None:
    """Register tools, resources and prompts on a FastMCP server."""
    auto_limit = get_settings().query.auto_limit

    server.tool(
        name="read-query",
        description=READ_QUERY_DESCRIPTION.format(limit=auto_limit),
        annotations=ToolAnnotations(readOnlyHint=True),
    )(read_query)
    server.tool(
        name="write-query",
        description=WRITE_QUERY_DESCRIPTION,
        annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True),
    )(write_query)

    server.resource(
        "kwdb://product_info",
        name="KWDB (KaiwuDB) Product Information",
        mime_type="application/json",
    )(product_info)
    server.resource(
        "kwdb://db_info/{database_name}",
        name="KWDB (KaiwuDB) Database Information",
        mime_type="application/json",
    )(database_info)
    server.resource(
        "kwdb://databases",
        name="KWDB (KaiwuDB) Databases",
        mime_type="application/json",
    )(list_databases)
    server.resource(
        "kwdb://tables",
        name="KWDB (KaiwuDB) Tables",
        mime_type="application/json",
    )(list_tables)
    server.resource(
        "kwdb://db_info/{database_name}/tables",
        name="KWDB (KaiwuDB) Database Tables",
        mime_type="application/json",
    )(database_tables)
    server.resource(
        "kwdb://table/{table_name}",
        name="KWDB (KaiwuDB) Table Schema",
        mime_type="application/json",
    )(table_schema)

    server.prompt(
        name="syntax_guide",
        description=(
            "KWDB (KaiwuDB) syntax guide and examples. Optional parameters: 'database' "
            "and 'table' for table-specific guidance"
        ),
    )(syntax_guide)
    server.prompt(
        name="db_description",
        description="KWDB (KaiwuDB) database description and capabilities",
    )(db_description_prompt)
    for guide in USE_CASE_GUIDES:
        server.prompt(name=guide.name, description=guide.description)(_use_case_prompt(guide))


register(mcp)
