"""Unit tests for the MCP tools, resources and prompts.

The server components are replaced with mocks by patching the module
state, so no database or transport is involved.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastmcp.exceptions import ResourceError

from kwdb_mcp import server
from kwdb_mcp.config.settings import get_settings
from kwdb_mcp.models.errors import (
    DatabaseConnectionError,
    DatabaseError,
    ExecutionTimeoutError,
    OperationNotAllowedError,
)
from kwdb_mcp.models.pool import PoolStats
from kwdb_mcp.models.schema import (
    TIME_SERIES_TABLE,
    DatabaseInfo,
    ExampleQueries,
    IndexInfo,
    ProductInfo,
    TableMetadata,
)
from kwdb_mcp.prompts.guides import DB_DESCRIPTION_INTRO, USE_CASE_GUIDES


@pytest.fixture
def state(monkeypatch: pytest.MonkeyPatch) -> server.ServerState:
    """Install mocked server components for the duration of a test."""
    executor = MagicMock()
    executor.execute_query = AsyncMock(return_value=[])
    executor.execute_write_query = AsyncMock(return_value=0)

    metadata = MagicMock()
    metadata.get_product_info = AsyncMock(return_value=ProductInfo())
    metadata.get_database_info = AsyncMock(
        return_value=DatabaseInfo(name="defaultdb", version="KaiwuDB 2.1.1")
    )
    metadata.get_table_columns = AsyncMock(return_value=[])
    metadata.get_table_metadata = AsyncMock(return_value=TableMetadata())
    metadata.get_table_example_queries = AsyncMock(return_value=ExampleQueries())
    metadata.get_databases = AsyncMock(return_value=["defaultdb", "tsdb"])
    metadata.get_tables = AsyncMock(return_value=["orders", "sensors"])
    metadata.get_tables_for_database = AsyncMock(return_value=["readings"])
    metadata.get_current_database = AsyncMock(return_value="defaultdb")

    pool_manager = MagicMock()
    pool_manager.get_stats = MagicMock(return_value=PoolStats(open_connections=2, idle=2))

    installed = server.ServerState(
        settings=get_settings(),
        pool_manager=pool_manager,
        executor=executor,
        metadata=metadata,
    )
    monkeypatch.setattr(server, "_state", installed)
    return installed


class TestReadQuery:
    """Tests for the read-query tool."""

    @pytest.mark.asyncio
    async def test_success_envelope(self, state: server.ServerState) -> None:
        state.executor.execute_query.return_value = [
            {"ts": "2024-01-01T00:00:00", "value": 1.5},
            {"ts": "2024-01-01T00:01:00", "value": 2.5},
        ]

        result = await server.read_query("SELECT ts, value FROM sensors LIMIT 2")

        assert result["status"] == "success"
        assert result["type"] == "query_result"
        assert result["error"] is None
        data = result["data"]
        assert data["result_type"] == "table"
        assert data["columns"] == ["ts", "value"]
        assert len(data["rows"]) == 2
        assert data["metadata"] == {
            "affected_rows": 0,
            "row_count": 2,
            "query": "SELECT ts, value FROM sensors LIMIT 2",
            "original_query": "SELECT ts, value FROM sensors LIMIT 2",
            "auto_limited": False,
        }

    @pytest.mark.asyncio
    async def test_select_without_limit_is_limited(self, state: server.ServerState) -> None:
        result = await server.read_query("SELECT * FROM sensors;")

        state.executor.execute_query.assert_awaited_once_with("SELECT * FROM sensors LIMIT 20;")
        metadata = result["data"]["metadata"]
        assert metadata["query"] == "SELECT * FROM sensors LIMIT 20;"
        assert metadata["original_query"] == "SELECT * FROM sensors;"
        assert metadata["auto_limited"] is True

    @pytest.mark.asyncio
    async def test_configured_limit(self, state: server.ServerState) -> None:
        state.settings.query.auto_limit = 5

        await server.read_query("SELECT * FROM sensors")

        state.executor.execute_query.assert_awaited_once_with("SELECT * FROM sensors LIMIT 5")

    @pytest.mark.asyncio
    async def test_show_is_not_limited(self, state: server.ServerState) -> None:
        await server.read_query("SHOW TABLES")
        state.executor.execute_query.assert_awaited_once_with("SHOW TABLES")

    @pytest.mark.asyncio
    async def test_empty_result_has_empty_columns(self, state: server.ServerState) -> None:
        result = await server.read_query("SHOW TABLES")

        assert result["data"]["columns"] == []
        assert result["data"]["rows"] == []
        assert result["data"]["metadata"]["row_count"] == 0

    @pytest.mark.asyncio
    async def test_rejected_write(self, state: server.ServerState) -> None:
        state.executor.execute_query.side_effect = OperationNotAllowedError(
            "write operation not allowed in read-query: INSERT",
            details={"operation": "INSERT"},
        )

        result = await server.read_query("INSERT INTO t VALUES (1)")

        assert result["status"] == "error"
        assert result["type"] == "query_result"
        assert result["data"] is None
        assert result["error"]["code"] == "operation_not_allowed"
        assert result["error"]["message"] == "write operation not allowed in read-query: INSERT"
        assert result["error"]["query"] == "INSERT INTO t VALUES (1)"

    @pytest.mark.asyncio
    async def test_timeout(self, state: server.ServerState) -> None:
        state.executor.execute_query.side_effect = ExecutionTimeoutError(
            "Query timeout: the query took too long to execute"
        )

        result = await server.read_query("SELECT * FROM big LIMIT 1")

        assert result["error"]["code"] == "execution_timeout"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_enveloped(self, state: server.ServerState) -> None:
        state.executor.execute_query.side_effect = RuntimeError("kaboom")

        result = await server.read_query("SELECT 1 LIMIT 1")

        assert result["status"] == "error"
        assert result["error"]["code"] == "internal_error"
        assert result["error"]["message"] == "kaboom"

    @pytest.mark.asyncio
    async def test_before_startup(self) -> None:
        result = await server.read_query("SELECT 1")

        assert result["status"] == "error"
        assert result["error"]["code"] == "pool_not_initialized"


class TestWriteQuery:
    """Tests for the write-query tool."""

    @pytest.mark.asyncio
    async def test_success_envelope(self, state: server.ServerState) -> None:
        state.executor.execute_write_query.return_value = 3

        result = await server.write_query("INSERT INTO t VALUES (1), (2), (3)")

        assert result == {
            "status": "success",
            "type": "write_result",
            "data": {
                "result_type": "write",
                "affected_rows": 3,
                "metadata": {"query": "INSERT INTO t VALUES (1), (2), (3)"},
            },
            "error": None,
        }

    @pytest.mark.asyncio
    async def test_rejected_read(self, state: server.ServerState) -> None:
        state.executor.execute_write_query.side_effect = OperationNotAllowedError(
            "not a write operation: expected INSERT, UPDATE, DELETE, CREATE, DROP, ALTER, etc"
        )

        result = await server.write_query("SELECT 1")

        assert result["status"] == "error"
        assert result["type"] == "write_result"
        assert result["error"]["code"] == "operation_not_allowed"

    @pytest.mark.asyncio
    async def test_database_unreachable(self, state: server.ServerState) -> None:
        state.executor.execute_write_query.side_effect = DatabaseConnectionError(
            "database connection still unavailable after reinitialize: connection refused"
        )

        result = await server.write_query("DELETE FROM t")

        assert result["error"]["code"] == "database_connection_error"
        assert "connection refused" in result["error"]["message"]


class TestResources:
    """Tests for the metadata resources."""

    @pytest.mark.asyncio
    async def test_product_info(self, state: server.ServerState) -> None:
        payload = json.loads(await server.product_info())
        assert payload["product_name"] == "KWDB (KaiwuDB)"

    @pytest.mark.asyncio
    async def test_product_info_failure(self, state: server.ServerState) -> None:
        state.metadata.get_product_info.side_effect = DatabaseError("boom")

        with pytest.raises(ResourceError, match="product information"):
            await server.product_info()

    @pytest.mark.asyncio
    async def test_database_info(self, state: server.ServerState) -> None:
        payload = json.loads(await server.database_info("defaultdb"))

        assert payload["name"] == "defaultdb"
        state.metadata.get_database_info.assert_awaited_once_with("defaultdb")

    @pytest.mark.asyncio
    async def test_list_databases(self, state: server.ServerState) -> None:
        payload = json.loads(await server.list_databases())

        assert payload["current_database"] == "defaultdb"
        assert payload["databases"] == [
            {"name": "defaultdb", "uri": "kwdb://db_info/defaultdb"},
            {"name": "tsdb", "uri": "kwdb://db_info/tsdb"},
        ]

    @pytest.mark.asyncio
    async def test_list_databases_failure(self, state: server.ServerState) -> None:
        state.metadata.get_databases.side_effect = DatabaseConnectionError("connection refused")

        with pytest.raises(ResourceError, match="failed to list databases"):
            await server.list_databases()

    @pytest.mark.asyncio
    async def test_list_tables(self, state: server.ServerState) -> None:
        payload = json.loads(await server.list_tables())

        assert payload["database"] == "defaultdb"
        assert payload["tables"] == [
            {"name": "orders", "uri": "kwdb://table/orders"},
            {"name": "sensors", "uri": "kwdb://table/sensors"},
        ]

    @pytest.mark.asyncio
    async def test_database_tables(self, state: server.ServerState) -> None:
        payload = json.loads(await server.database_tables("tsdb"))

        assert payload == {
            "database": "tsdb",
            "tables": [{"name": "readings", "uri": "kwdb://table/readings"}],
        }
        state.metadata.get_tables_for_database.assert_awaited_once_with("tsdb")

    @pytest.mark.asyncio
    async def test_database_tables_failure(self, state: server.ServerState) -> None:
        state.metadata.get_tables_for_database.side_effect = DatabaseError(
            "cannot list tables for database tsdb: not connected to this database"
        )

        with pytest.raises(ResourceError, match="'tsdb'"):
            await server.database_tables("tsdb")

    @pytest.mark.asyncio
    async def test_table_schema(self, state: server.ServerState) -> None:
        state.metadata.get_table_columns.return_value = [
            {"column_name": "ts", "data_type": "TIMESTAMPTZ"}
        ]
        state.metadata.get_table_metadata.return_value = TableMetadata(
            table_type=TIME_SERIES_TABLE,
            indexes=[IndexInfo(name="primary tag", columns=["device_id"])],
            primary_key=["device_id"],
        )
        state.metadata.get_table_example_queries.return_value = ExampleQueries(
            read=["SELECT * FROM sensors LIMIT 10;"], write=[]
        )

        payload = json.loads(await server.table_schema("sensors"))

        assert payload["status"] == "success"
        assert payload["type"] == "table_schema"
        data = payload["data"]
        assert data["table_name"] == "sensors"
        assert data["table_type"] == TIME_SERIES_TABLE
        assert data["primary_key"] == ["device_id"]
        assert data["indexes"][0]["name"] == "primary tag"
        assert data["read_example_queries"] == ["SELECT * FROM sensors LIMIT 10;"]
        assert "partition_info" not in data

    @pytest.mark.asyncio
    async def test_table_schema_degrades(self, state: server.ServerState) -> None:
        """Metadata and example failures leave those fields out."""
        state.metadata.get_table_columns.return_value = [{"column_name": "a", "data_type": "INT"}]
        state.metadata.get_table_metadata.side_effect = DatabaseError("SHOW CREATE failed")
        state.metadata.get_table_example_queries.side_effect = DatabaseError("missing")

        data = json.loads(await server.table_schema("t"))["data"]

        assert data["columns"] == [{"column_name": "a", "data_type": "INT"}]
        assert "table_type" not in data
        assert "indexes" not in data
        assert data["read_example_queries"] == []

    @pytest.mark.asyncio
    async def test_table_schema_requires_columns(self, state: server.ServerState) -> None:
        state.metadata.get_table_columns.side_effect = DatabaseError("no such table")

        with pytest.raises(ResourceError, match="failed to get table schema for 't'"):
            await server.table_schema("t")


class TestPrompts:
    """Tests for the guide prompts."""

    @pytest.mark.asyncio
    async def test_syntax_guide_without_server(self) -> None:
        messages = await server.syntax_guide(table="sensors")

        assert len(messages) == 1
        assert messages[0].role == "user"
        assert "## Table Schema" not in messages[0].content.text

    @pytest.mark.asyncio
    async def test_syntax_guide_with_table(self, state: server.ServerState) -> None:
        state.metadata.get_table_columns.return_value = [
            {"column_name": "ts", "data_type": "TIMESTAMPTZ", "is_nullable": False}
        ]

        messages = await server.syntax_guide(database="defaultdb", table="sensors")

        text = messages[0].content.text
        assert "## Table Schema for 'sensors'" in text
        assert "## Database Information for 'defaultdb'" in text

    @pytest.mark.asyncio
    async def test_syntax_guide_lookup_failure(self, state: server.ServerState) -> None:
        state.metadata.get_table_columns.side_effect = DatabaseError("no such table")
        state.metadata.get_database_info.side_effect = DatabaseError("no such database")

        messages = await server.syntax_guide(database="nope", table="ghost")

        text = messages[0].content.text
        assert "## Table Schema" not in text
        assert "## Database Information" not in text

    @pytest.mark.asyncio
    async def test_db_description(self) -> None:
        messages = await server.db_description_prompt()

        assert [m.role for m in messages] == ["user", "assistant"]
        assert messages[0].content.text == DB_DESCRIPTION_INTRO

    @pytest.mark.asyncio
    @pytest.mark.parametrize("guide", USE_CASE_GUIDES, ids=lambda g: g.name)
    async def test_use_case_prompts(self, guide) -> None:
        render = server._use_case_prompt(guide)

        messages = await render()

        assert render.__name__ == guide.name
        assert messages[0].content.text == guide.intro
        assert messages[1].content.text.strip()


class TestConnectionStats:
    """Tests for pool statistics exposure."""

    def test_zero_before_startup(self) -> None:
        assert server.get_connection_stats() == PoolStats()

    def test_delegates_to_pool(self, state: server.ServerState) -> None:
        assert server.get_connection_stats().open_connections == 2
