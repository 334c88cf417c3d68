"""Markdown guides served as MCP prompts.

The guides ship with the package under ``prompts/docs``. Each one has a
short fallback so a missing or unreadable file degrades the prompt rather
than failing server startup.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources

from kwdb_mcp.models.schema import DatabaseInfo
from kwdb_mcp.services.sql_executor import Record

logger = logging.getLogger(__name__)

DB_DESCRIPTION_FALLBACK = (
    "# KWDB Database\n\n"
    "KWDB is a distributed SQL database compatible with PostgreSQL and CockroachDB."
)
SYNTAX_GUIDE_FALLBACK = (
    "# KWDB SQL Syntax Guide\n\n"
    "KWDB supports standard SQL syntax compatible with PostgreSQL and CockroachDB."
)

SYNTAX_EXPERT_INTRO = (
    "You are a SQL expert specializing in KWDB (KaiwuDB). "
    "Help users understand the syntax and capabilities of the database."
)
DB_DESCRIPTION_INTRO = (
    "You are a database expert specializing in KWDB (KaiwuDB). "
    "Help users understand the capabilities and features of the database."
)


@dataclass(frozen=True)
class UseCaseGuide:
    """A task-oriented guide exposed as a two-message prompt."""

    name: str
    filename: str
    title: str
    description: str
    intro: str

    def text(self) -> str:
        """Guide markdown, or a titled stub when the file cannot be read."""
        return get_guide(self.filename, f"# {self.title}\n\n{self.description}.")


USE_CASE_GUIDES: tuple[UseCaseGuide, ...] = (
    UseCaseGuide(
        name="cluster_management",
        filename="ClusterManagementGuide.md",
        title="KWDB Cluster Management Guide",
        description="KWDB Cluster Management Guide and Best Practices",
        intro=(
            "You are a KWDB cluster management expert. Help users understand and "
            "implement KWDB cluster management operations."
        ),
    ),
    UseCaseGuide(
        name="data_migration",
        filename="DataMigrationGuide.md",
        title="KWDB Data Migration Guide",
        description="KWDB Data Migration Guide and Best Practices",
        intro=(
            "You are a KWDB data migration expert. Help users understand and "
            "implement data migration operations."
        ),
    ),
    UseCaseGuide(
        name="installation",
        filename="InstallationGuide.md",
        title="KWDB Installation and Deployment Guide",
        description="KWDB Installation and Deployment Guide and Best Practices",
        intro=(
            "You are a KWDB installation and deployment expert. Help users understand "
            "and implement KWDB installation and deployment operations."
        ),
    ),
    UseCaseGuide(
        name="performance_tuning",
        filename="PerformanceTuningGuide.md",
        title="KWDB Performance Tuning Guide",
        description="KWDB Performance Tuning Guide and Best Practices",
        intro=(
            "You are a KWDB performance tuning expert. Help users understand and "
            "implement performance optimization operations."
        ),
    ),
    UseCaseGuide(
        name="troubleshooting",
        filename="TroubleShootingGuide.md",
        title="KWDB Troubleshooting Guide",
        description="KWDB Troubleshooting Guide and Best Practices",
        intro="You are a KWDB troubleshooting expert. Help users diagnose and resolve KWDB issues.",
    ),
    UseCaseGuide(
        name="backup_restore",
        filename="BackupRestoreGuide.md",
        title="KWDB Backup and Restore Guide",
        description="KWDB Backup and Restore Guide and Best Practices",
        intro=(
            "You are a KWDB backup and restore expert. Help users understand and "
            "implement backup and restore operations."
        ),
    ),
    UseCaseGuide(
        name="dba_template",
        filename="DBATemplate.md",
        title="KWDB Database Administration Template",
        description="KWDB Database Administration Template and Best Practices",
        intro=(
            "You are a KWDB database administration expert. Help users understand "
            "and implement database administration operations."
        ),
    ),
)


def load_markdown(filename: str) -> str:
    """Read a guide shipped in the package.

    Raises:
        OSError: If the file is missing or unreadable.
    """
    return resources.files("kwdb_mcp.prompts").joinpath("docs", filename).read_text(encoding="utf-8")


@lru_cache(maxsize=None)
def get_guide(filename: str, fallback: str = "") -> str:
    """Load a guide once, returning ``fallback`` if it cannot be read."""
    try:
        return load_markdown(filename)
    except OSError as e:
        logger.warning(f"Failed to load guide {filename}: {e!s}")
        return fallback


def db_description() -> str:
    return get_guide("DBDescription.md", DB_DESCRIPTION_FALLBACK)


def syntax_guide() -> str:
    return get_guide("SyntaxGuide.md", SYNTAX_GUIDE_FALLBACK)


def _expand_examples(template: str, table_name: str) -> list[str]:
    queries = []
    for line in template.replace("{table}", table_name).splitlines():
        line = line.strip()
        if not line:
            continue
        queries.append(line.removeprefix("- "))
    return queries


def get_read_example_queries(table_name: str) -> list[str]:
    """Read examples from ``ReadExamples.md`` with ``{table}`` filled in."""
    return _expand_examples(get_guide("ReadExamples.md"), table_name)


def get_write_example_queries(table_name: str) -> list[str]:
    """Write examples from ``WriteExamples.md`` with ``{table}`` filled in."""
    return _expand_examples(get_guide("WriteExamples.md"), table_name)


def _is_not_null(value: object) -> bool:
    # SHOW COLUMNS reports a boolean; information_schema reports YES/NO
    return value is False or str(value).upper() in ("NO", "FALSE")


def format_table_section(table_name: str, columns: list[Record]) -> str:
    """Markdown describing a table's columns and example statements.

    Returns an empty string when the table has no columns, so callers
    can append it unconditionally.
    """
    if not columns:
        return ""

    lines = ["", "", f"## Table Schema for '{table_name}'"]
    for column in columns:
        name = column.get("column_name")
        data_type = column.get("data_type")
        if not name or not data_type:
            continue
        line = f"- **{name}**: {data_type}"
        if _is_not_null(column.get("is_nullable")):
            line += " (NOT NULL)"
        if column.get("column_default"):
            line += f" DEFAULT {column['column_default']}"
        lines.append(line)

    for label, examples in (
        ("Read", get_read_example_queries(table_name)),
        ("Write", get_write_example_queries(table_name)),
    ):
        if not examples:
            continue
        lines.append("")
        lines.append(f"## Example {label} Queries for '{table_name}'")
        for example in examples:
            lines.append(f"```sql\n{example}\n```\n")

    return "\n".join(lines)


def build_syntax_guide(
    table_name: str | None = None,
    columns: list[Record] | None = None,
    database_info: DatabaseInfo | None = None,
) -> str:
    """Assemble the syntax guide prompt text.

    Args:
        table_name: Table the guide should focus on, if any.
        columns: Column rows for ``table_name``.
        database_info: Database the guide should describe, if any.
    """
    text = f"{SYNTAX_EXPERT_INTRO}\n\n{syntax_guide()}"

    if table_name:
        text += format_table_section(table_name, columns or [])

    if database_info is not None:
        text += "\n\n" + database_info.to_prompt_section() + "\n"

    return text
