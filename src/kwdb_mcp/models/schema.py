"""Database metadata models for KWDB introspection.

This module defines data models describing the KWDB product, its databases
and tables, including indexes, primary keys and time-series partitioning.
"""

from typing import Any

from pydantic import BaseModel, Field

TIME_SERIES_TABLE = "TIME SERIES TABLE"
BASE_TABLE = "BASE TABLE"


class ProductInfo(BaseModel):
    """General information about the KWDB product."""

    product_name: str = Field(default="KWDB (KaiwuDB)", description="Product name")
    description: str = Field(
        default="Time-series database with advanced analytics capabilities",
        description="Product description",
    )
    features: list[str] = Field(
        default_factory=lambda: [
            "Time-series data storage",
            "SQL query support",
            "High-performance analytics",
            "Scalable architecture",
        ],
        description="Headline product features",
    )
    version_info: dict[str, Any] = Field(default_factory=dict, description="Parsed version data")


class DatabaseInfo(BaseModel):
    """Information about a single database."""

    name: str = Field(..., description="Database name")
    version: str = Field(..., description="Server version string")
    engine_type: str = Field(default="KaiwuDB", description="Engine type from SHOW DATABASES")
    comment: str = Field(default="", description="Database comment")
    properties: dict[str, Any] = Field(default_factory=dict, description="Encoding, owner, etc.")

    def to_prompt_section(self) -> str:
        """Format database info as a markdown section for prompts."""
        lines = [
            f"## Database Information for '{self.name}'",
            f"- **Name**: {self.name}",
            f"- **Version**: {self.version}",
            f"- **Engine Type**: {self.engine_type}",
        ]
        if self.comment:
            lines.append(f"- **Comment**: {self.comment}")
        for key, value in self.properties.items():
            lines.append(f"- **{key}**: {value}")
        return "\n".join(lines)


class IndexInfo(BaseModel):
    """Information about an index, primary key, or time-series tag."""

    name: str = Field(..., description="Index name")
    columns: list[str] = Field(..., description="Indexed column names")
    unique: bool = Field(default=False, description="Whether index is unique")


class PartitionInfo(BaseModel):
    """Partitioning clause extracted from a CREATE TABLE statement."""

    type: str | None = Field(None, description="Partition type (RANGE, LIST, HASH)")
    key: str | None = Field(None, description="Partition key expression")
    interval: str | None = Field(None, description="Partition interval for time-series data")


class TableMetadata(BaseModel):
    """Structural metadata of a table."""

    table_type: str = Field(default=BASE_TABLE, description="BASE TABLE or TIME SERIES TABLE")
    create_statement: str = Field(default="", description="SHOW CREATE TABLE output")
    partition_info: PartitionInfo | None = None
    indexes: list[IndexInfo] = Field(default_factory=list)
    primary_key: list[str] = Field(default_factory=list)

    @property
    def is_time_series(self) -> bool:
        return self.table_type == TIME_SERIES_TABLE


class ExampleQueries(BaseModel):
    """Example read and write statements for a table."""

    read: list[str] = Field(default_factory=list)
    write: list[str] = Field(default_factory=list)


class TableSchema(BaseModel):
    """Schema document served for a table resource."""

    table_name: str
    columns: list[dict[str, Any]] = Field(default_factory=list)
    table_type: str | None = None
    primary_key: list[str] | None = None
    indexes: list[IndexInfo] | None = None
    partition_info: PartitionInfo | None = None
    read_example_queries: list[str] = Field(default_factory=list)
    write_example_queries: list[str] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        table_name: str,
        columns: list[dict[str, Any]],
        metadata: TableMetadata | None,
        examples: ExampleQueries,
    ) -> "TableSchema":
        """Assemble a schema document, leaving metadata fields empty when unavailable."""
        schema = cls(
            table_name=table_name,
            columns=columns,
            read_example_queries=examples.read,
            write_example_queries=examples.write,
        )
        if metadata is not None:
            schema.table_type = metadata.table_type
            schema.indexes = metadata.indexes
            schema.partition_info = metadata.partition_info
            if metadata.primary_key:
                schema.primary_key = metadata.primary_key
        return schema
