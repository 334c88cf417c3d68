"""KWDB metadata introspection.

This module provides the MetadataService, which answers the catalog
questions behind the MCP resources: which tables and databases exist,
what a table's columns, indexes and partitioning look like, and which
example statements suit it. Every lookup goes through the QueryExecutor
and therefore through the shared, health-checked pool.
"""

import logging
import re
from typing import Any

from kwdb_mcp.models.errors import DatabaseError, KwdbMcpError, ValidationError
from kwdb_mcp.models.schema import (
    BASE_TABLE,
    TIME_SERIES_TABLE,
    DatabaseInfo,
    ExampleQueries,
    IndexInfo,
    PartitionInfo,
    ProductInfo,
    TableMetadata,
)
from kwdb_mcp.services.sql_executor import QueryExecutor, Record

logger = logging.getLogger(__name__)

DEFAULT_ENGINE_TYPE = "KaiwuDB"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$.]*$")
_PRIMARY_TAGS_RE = re.compile(r"PRIMARY\s+TAGS\s*\(\s*([^)]+)\s*\)", re.IGNORECASE)
_TAGS_RE = re.compile(r"\bTAGS\s*\(", re.IGNORECASE)
_TAG_COLUMN_RE = re.compile(r"\s*(\w+)\s+[^,]+")
_PRIMARY_KEY_RE = re.compile(r"PRIMARY\s+KEY\s*\(\s*([^)]+)\s*\)", re.IGNORECASE)
_INDEX_RE = re.compile(
    r"(UNIQUE\s+)?(?:KEY|INDEX)\s+(\S+)\s*\(([^)]+)\)(?:\s+USING\s+(\S+))?",
    re.IGNORECASE,
)
_PARTITION_RE = re.compile(r"PARTITION BY (\w+)\s*\(([^)]+)\)", re.IGNORECASE)
_INTERVAL_RE = re.compile(r"INTERVAL\s+(['\"]?)([^'\"]+)(['\"]?)", re.IGNORECASE)

_QUOTES = "`\"'"


def validate_identifier(name: str) -> str:
    """Check that a table or database name is safe to interpolate into SHOW statements.

    Args:
        name: Identifier, optionally qualified with dots.

    Returns:
        str: The identifier unchanged.

    Raises:
        ValidationError: If the name contains anything beyond letters,
            digits, underscores, dollar signs and dots.
    """
    if not name or not _IDENTIFIER_RE.match(name):
        raise ValidationError(
            f"invalid identifier: {name!r}",
            details={"identifier": name},
        )
    return name


class MetadataService:
    """Catalog lookups for KWDB databases and tables.

    Example:
        >>> metadata = MetadataService(executor)
        >>> tables = await metadata.get_tables()
        >>> info = await metadata.get_table_metadata("sensors")
        >>> info.table_type
        'TIME SERIES TABLE'
    """

    def __init__(self, executor: QueryExecutor) -> None:
        self.executor = executor

    async def get_tables(self) -> list[str]:
        """Names of all tables in the public schema of the current database."""
        rows = await self.executor.fetch_rows(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public'
            """
        )
        return [str(row["table_name"]) for row in rows]

    async def get_tables_for_database(self, database_name: str) -> list[str]:
        """Base tables of a named database.

        Falls back to ``pg_catalog.pg_tables`` when the catalog query fails,
        which only works for the database the pool is connected to.

        Raises:
            DatabaseError: If neither query can list the tables.
        """
        try:
            rows = await self.executor.fetch_rows(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                  AND table_catalog = $1
                  AND table_type = 'BASE TABLE'
                ORDER BY table_name
                """,
                database_name,
            )
            return [str(row["table_name"]) for row in rows]
        except DatabaseError as e:
            logger.warning(
                f"Catalog lookup of tables for database {database_name} failed, "
                f"trying pg_tables: {e.message}"
            )

        if database_name != await self.get_current_database():
            raise DatabaseError(
                f"cannot list tables for database {database_name}: not connected to this database",
                details={"database": database_name},
            )

        rows = await self.executor.fetch_rows(
            """
            SELECT tablename
            FROM pg_catalog.pg_tables
            WHERE schemaname = 'public'
            ORDER BY tablename
            """
        )
        return [str(row["tablename"]) for row in rows]

    async def get_current_database(self) -> str:
        """Name of the database the pool is connected to, or "" if unknown."""
        try:
            name = await self.executor.fetch_value("SELECT current_database()")
        except DatabaseError as e:
            logger.warning(f"Failed to get current database name: {e.message}")
            return ""
        return str(name) if name is not None else ""

    async def get_databases(self) -> list[str]:
        """Names of all non-template databases."""
        rows = await self.executor.fetch_rows(
            """
            SELECT datname
            FROM pg_database
            WHERE datistemplate = false
            """
        )
        return [str(row["datname"]) for row in rows]

    async def get_table_columns(self, table_name: str) -> list[Record]:
        """Raw ``SHOW COLUMNS ... WITH COMMENT`` rows for a table."""
        validate_identifier(table_name)
        return await self.executor.fetch_rows(f"SHOW COLUMNS FROM {table_name} WITH COMMENT")

    async def get_product_info(self) -> ProductInfo:
        """Product description with the parsed server version."""
        version = await self.executor.fetch_value("SELECT version()")
        return ProductInfo(version_info=parse_version(str(version or "")))

    async def get_database_info(self, database_name: str) -> DatabaseInfo:
        """Version, engine type and properties of a database.

        Only the version query is mandatory. Engine type defaults to
        ``KaiwuDB`` and properties are omitted when their lookups fail.
        """
        version = await self.executor.fetch_value("SELECT version()")
        engine_type = await self._get_engine_type(database_name)

        properties: dict[str, Any] = {}
        encoding = await self._optional_value(
            "encoding",
            """
            SELECT pg_encoding_to_char(encoding)
            FROM pg_database
            WHERE datname = $1
            """,
            database_name,
        )
        if encoding is not None:
            properties["encoding"] = encoding

        owner = await self._optional_value(
            "owner",
            """
            SELECT pg_catalog.pg_get_userbyid(d.datdba) AS owner
            FROM pg_catalog.pg_database d
            WHERE d.datname = $1
            """,
            database_name,
        )
        if owner is not None:
            properties["owner"] = owner

        creation_time = await self._optional_value(
            "creation_time",
            """
            SELECT MIN(mod_time) AS creation_time
            FROM kwdb_internal.tables
            WHERE database_name = $1
            """,
            database_name,
        )
        properties["creation_time"] = creation_time if creation_time is not None else ""

        return DatabaseInfo(
            name=database_name,
            version=str(version or ""),
            engine_type=engine_type,
            properties=properties,
        )

    async def _get_engine_type(self, database_name: str) -> str:
        try:
            rows = await self.executor.fetch_rows("SHOW DATABASES")
        except DatabaseError as e:
            logger.warning(f"Failed to execute SHOW DATABASES: {e.message}")
            return DEFAULT_ENGINE_TYPE

        for row in rows:
            columns = {key.lower(): value for key, value in row.items()}
            if "database_name" not in columns or "engine_type" not in columns:
                logger.warning("SHOW DATABASES returned no database_name or engine_type column")
                return DEFAULT_ENGINE_TYPE
            if columns["database_name"] == database_name:
                return str(columns["engine_type"])

        logger.warning(f"Database {database_name} not found in SHOW DATABASES results")
        return DEFAULT_ENGINE_TYPE

    async def _optional_value(self, name: str, sql: str, *args: Any) -> Any:
        try:
            return await self.executor.fetch_value(sql, *args)
        except DatabaseError as e:
            logger.debug(f"Property {name} unavailable: {e.message}")
            return None

    async def get_table_metadata(self, table_name: str) -> TableMetadata:
        """Table type, partitioning, indexes and primary key of a table.

        Raises:
            ValidationError: If the table name is not a plain identifier.
            DatabaseError: If ``SHOW CREATE TABLE`` fails or returns nothing.
        """
        create_statement = await self._get_create_statement(table_name)
        table_type = await self._get_table_type(table_name, create_statement)

        metadata = TableMetadata(
            table_type=table_type,
            create_statement=create_statement,
            partition_info=extract_partition_info(create_statement),
        )

        try:
            metadata.indexes, metadata.primary_key = await self.get_table_indexes(
                table_name, create_statement, table_type
            )
        except KwdbMcpError as e:
            logger.warning(f"Failed to get indexes for table {table_name}: {e.message}")

        return metadata

    async def get_table_indexes(
        self, table_name: str, create_statement: str, table_type: str
    ) -> tuple[list[IndexInfo], list[str]]:
        """Indexes and primary key columns of a table.

        Parsed from the CREATE TABLE text first; when that yields nothing
        the system catalogs are consulted instead.
        """
        first_column: str | None = None
        if table_type == TIME_SERIES_TABLE:
            columns = await self.get_table_columns(table_name)
            if columns:
                first_column = str(columns[0].get("column_name") or "") or None

        indexes, primary_key = extract_indexes(create_statement, table_type, first_column)
        if indexes:
            return indexes, primary_key

        return await self._get_indexes_from_catalog(table_name)

    async def _get_indexes_from_catalog(self, table_name: str) -> tuple[list[IndexInfo], list[str]]:
        rows = await self.executor.fetch_rows(
            """
            SELECT
                i.relname AS index_name,
                a.attname AS column_name,
                ix.indisprimary AS is_primary,
                ix.indisunique AS is_unique
            FROM pg_index ix
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
            WHERE t.relname = $1
            ORDER BY i.relname, a.attnum
            """,
            table_name,
        )

        indexes: dict[str, IndexInfo] = {}
        primary_key: list[str] = []
        for row in rows:
            name = str(row["index_name"])
            column = str(row["column_name"])
            if row["is_primary"]:
                primary_key.append(column)
            if name not in indexes:
                indexes[name] = IndexInfo(name=name, columns=[], unique=bool(row["is_unique"]))
            indexes[name].columns.append(column)

        return list(indexes.values()), primary_key

    async def _get_create_statement(self, table_name: str) -> str:
        validate_identifier(table_name)
        rows = await self.executor.fetch_rows(f"SHOW CREATE TABLE {table_name}")
        if not rows:
            raise DatabaseError(
                f"no rows returned by SHOW CREATE TABLE {table_name}",
                details={"table": table_name},
            )

        for key, value in rows[0].items():
            if key.lower() == "create_statement":
                return str(value or "")

        raise DatabaseError(
            "create_statement column not found in SHOW CREATE TABLE result",
            details={"table": table_name},
        )

    async def _get_table_type(self, table_name: str, create_statement: str) -> str:
        try:
            rows = await self.executor.fetch_rows("SHOW TABLES")
        except DatabaseError as e:
            logger.warning(f"Failed to get table types from SHOW TABLES: {e.message}")
            return infer_table_type(create_statement)

        for row in rows:
            values = list(row.values())
            if len(values) >= 2 and values[0] == table_name:
                return str(values[1])

        return infer_table_type(create_statement)

    async def get_table_example_queries(self, table_name: str) -> ExampleQueries:
        """Example read and write statements generated from a table's columns.

        Raises:
            DatabaseError: If the table does not exist.
        """
        exists = await self.executor.fetch_value(
            "SELECT EXISTS (SELECT 1 FROM information_schema.tables WHERE table_name = $1)",
            table_name,
        )
        if not exists:
            raise DatabaseError(
                f"table {table_name} does not exist",
                details={"table": table_name},
            )

        columns = await self.get_table_columns(table_name)
        return ExampleQueries(
            read=generate_read_examples(table_name, columns),
            write=generate_write_examples(table_name, columns),
        )


def parse_version(version: str) -> dict[str, Any]:
    """Split a ``SELECT version()`` string into its parts.

    Example:
        >>> parse_version("KaiwuDB 2.1.1 (x86_64-linux-gnu, built 2024/12/04 07:44:35, go1.16.15)")["version"]
        '2.1.1'
    """
    number = "unknown"
    build_date = "unknown"
    platform = "unknown"

    if "KaiwuDB" in version:
        parts = version.split(" ")
        if len(parts) >= 2:
            number = parts[1]

    start = version.find("built")
    if start > 0:
        rest = version[start + len("built ") :]
        end = rest.find(",")
        if end > 0:
            build_date = rest[:end].strip()

    start = version.find("(")
    end = version.find(",")
    if start > 0 and end > start and ")" in version:
        platform = version[start + 1 : end].strip()

    return {
        "version": number,
        "full_version": version,
        "build_date": build_date,
        "platform": platform,
        "api_version": "v1",
    }


def infer_table_type(create_statement: str) -> str:
    if "TAGS" in create_statement or "TIME SERIES" in create_statement:
        return TIME_SERIES_TABLE
    return BASE_TABLE


def _split_columns(columns: str) -> list[str]:
    names = []
    for column in columns.split(","):
        column = column.strip()
        # Prefix lengths such as name(10)
        if "(" in column:
            column = column[: column.index("(")]
        names.append(column.strip(_QUOTES))
    return names


def _tags_clause(create_statement: str) -> str:
    """Body of the ``TAGS (...)`` clause, honouring nested parentheses."""
    for match in _TAGS_RE.finditer(create_statement):
        # PRIMARY TAGS lists keys, not tag definitions
        if create_statement[: match.start()].rstrip().upper().endswith("PRIMARY"):
            continue
        depth = 1
        start = match.end()
        for pos in range(start, len(create_statement)):
            char = create_statement[pos]
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return create_statement[start:pos]
        return create_statement[start:]
    return ""


def extract_indexes(
    create_statement: str, table_type: str, first_column: str | None = None
) -> tuple[list[IndexInfo], list[str]]:
    """Parse indexes and primary key columns out of a CREATE TABLE statement.

    Time-series tables get a time index on their first column, a primary
    tag index for ``PRIMARY TAGS(...)`` and a tag index for every other
    tag. Relational tables get their ``PRIMARY KEY`` and any
    ``[UNIQUE] KEY|INDEX name (cols)`` clauses.
    """
    indexes: list[IndexInfo] = []
    primary_key: list[str] = []

    if table_type == TIME_SERIES_TABLE:
        if first_column:
            indexes.append(IndexInfo(name="time index", columns=[first_column]))

        match = _PRIMARY_TAGS_RE.search(create_statement)
        if match:
            primary_key = _split_columns(match.group(1))
            indexes.append(IndexInfo(name="primary tag", columns=primary_key))

        for column in _TAG_COLUMN_RE.findall(_tags_clause(create_statement)):
            if column not in primary_key:
                indexes.append(IndexInfo(name="tag", columns=[column]))
        return indexes, primary_key

    match = _PRIMARY_KEY_RE.search(create_statement)
    if match:
        primary_key = _split_columns(match.group(1))
        indexes.append(IndexInfo(name="primary key", columns=primary_key))

    for unique, name, columns, _using in _INDEX_RE.findall(create_statement):
        indexes.append(
            IndexInfo(
                name=name.strip(_QUOTES),
                columns=_split_columns(columns),
                unique=bool(unique),
            )
        )

    return indexes, primary_key


def extract_partition_info(create_statement: str) -> PartitionInfo | None:
    """Partition type, key and interval, or None when the table is not partitioned."""
    upper = create_statement.upper()
    if "PARTITION BY" not in upper:
        return None

    info = PartitionInfo()
    match = _PARTITION_RE.search(create_statement)
    if match:
        info.type = match.group(1).upper()
        info.key = match.group(2).strip(_QUOTES + " ")

    if "INTERVAL" in upper:
        interval = _INTERVAL_RE.search(create_statement)
        if interval:
            info.interval = interval.group(2)

    return info


def _column_type(column: Record) -> str:
    return str(column.get("data_type") or "").lower()


def _is_text(data_type: str) -> bool:
    return "char" in data_type or "text" in data_type


def _is_temporal(data_type: str) -> bool:
    return "date" in data_type or "time" in data_type


def _column_names(columns: list[Record]) -> list[str]:
    return [str(c["column_name"]) for c in columns if isinstance(c.get("column_name"), str)]


def generate_read_examples(table_name: str, columns: list[Record]) -> list[str]:
    """Example SELECT statements shaped by the table's column types."""
    examples = [f"SELECT * FROM {table_name} LIMIT 10;"]
    names = _column_names(columns)

    if names:
        examples.append(f"SELECT {', '.join(names[:3])} FROM {table_name} LIMIT 10;")

    for column in columns:
        name = column.get("column_name")
        if not isinstance(name, str):
            continue
        data_type = _column_type(column)
        if "int" in data_type:
            examples.append(f"SELECT * FROM {table_name} WHERE {name} > 0 LIMIT 10;")
            break
        if _is_text(data_type):
            examples.append(f"SELECT * FROM {table_name} WHERE {name} LIKE 'A%' LIMIT 10;")
            break
        if _is_temporal(data_type):
            examples.append(
                f"SELECT * FROM {table_name} WHERE {name} > NOW() - INTERVAL '1 month' LIMIT 10;"
            )
            break

    if names:
        examples.append(f"SELECT * FROM {table_name} ORDER BY {names[0]} DESC LIMIT 10;")

    if len(columns) > 1:
        group_by = aggregate = None
        for column in columns:
            name = column.get("column_name")
            if not isinstance(name, str):
                continue
            data_type = _column_type(column)
            if group_by is None and _is_text(data_type):
                group_by = name
            elif aggregate is None and "int" in data_type:
                aggregate = name
            if group_by and aggregate:
                break
        if group_by and aggregate:
            examples.append(
                f"SELECT {group_by}, COUNT(*), AVG({aggregate}) FROM {table_name} "
                f"GROUP BY {group_by} LIMIT 10;"
            )

    return examples


def _example_value(data_type: str) -> str:
    if "int" in data_type:
        return "42"
    if _is_text(data_type):
        return "'example_value'"
    if _is_temporal(data_type):
        return "NOW()"
    if "bool" in data_type:
        return "true"
    if "numeric" in data_type or "decimal" in data_type:
        return "123.45"
    return "NULL"


def generate_write_examples(table_name: str, columns: list[Record]) -> list[str]:
    """Example INSERT, UPDATE and DELETE statements for a table."""
    if not columns:
        return []

    examples = []

    insert_columns = []
    values = []
    for column in columns:
        name = column.get("column_name")
        if not isinstance(name, str):
            continue
        # Identity and generated columns are filled by the server
        if column.get("is_identity") is True or column.get("is_generated") is True:
            continue
        insert_columns.append(name)
        values.append(_example_value(_column_type(column)))
    if insert_columns:
        examples.append(
            f"INSERT INTO {table_name} ({', '.join(insert_columns)}) VALUES ({', '.join(values)});"
        )

    update_column = where_column = None
    for column in columns:
        name = column.get("column_name")
        if not isinstance(name, str):
            continue
        data_type = _column_type(column)
        if update_column is None and _is_text(data_type):
            update_column = name
        elif where_column is None and (
            "int" in data_type or name == "id" or name.endswith("_id")
        ):
            where_column = name
        if update_column and where_column:
            break
    if update_column:
        if where_column:
            examples.append(
                f"UPDATE {table_name} SET {update_column} = 'new_value' WHERE {where_column} = 1;"
            )
        else:
            examples.append(f"UPDATE {table_name} SET {update_column} = 'new_value' LIMIT 1;")

    delete_column = None
    for column in columns:
        name = column.get("column_name")
        if not isinstance(name, str):
            continue
        if name == "id" or name.endswith("_id") or "int" in _column_type(column):
            delete_column = name
            break
    if delete_column:
        examples.append(f"DELETE FROM {table_name} WHERE {delete_column} = 1;")
    else:
        examples.append(f"DELETE FROM {table_name} WHERE false; -- Add your condition here")

    return examples
