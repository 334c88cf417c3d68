"""Syntactic read/write classification of SQL statements.

Classification only looks at the leading keyword of the trimmed,
lowercased statement; the statement body is never parsed.
"""

import re

_LIMIT_RE = re.compile(r"\bLIMIT\b")

# Checked in order; the first match names the operation.
WRITE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    # DML
    ("INSERT", re.compile(r"^insert\s")),
    ("UPDATE", re.compile(r"^update\s")),
    ("DELETE", re.compile(r"^delete\s")),
    # DDL
    ("DROP", re.compile(r"^drop\s")),
    ("CREATE", re.compile(r"^create\s")),
    ("ALTER", re.compile(r"^alter\s")),
    ("TRUNCATE", re.compile(r"^truncate\s")),
    ("GRANT", re.compile(r"^grant\s")),
    ("REVOKE", re.compile(r"^revoke\s")),
)


def classify_query(sql: str) -> tuple[bool, str | None]:
    """Classify a statement as a write or a read.

    Args:
        sql: SQL statement text.

    Returns:
        tuple: ``(True, operation)`` for a write, e.g. ``(True, "INSERT")``,
            or ``(False, None)`` for anything else.

    Example:
        >>> classify_query("  INSERT INTO t VALUES (1)")
        (True, 'INSERT')
        >>> classify_query("SELECT 1")
        (False, None)
    """
    statement = sql.strip().lower()
    for operation, pattern in WRITE_PATTERNS:
        if pattern.match(statement):
            return True, operation
    return False, None


def is_select_without_limit(sql: str) -> bool:
    """Check whether a statement is a plain SELECT lacking a LIMIT clause.

    EXPLAIN and SHOW statements never qualify, nor does EXPLAIN SELECT.
    """
    statement = sql.strip().upper()

    if not statement.startswith("SELECT"):
        return False

    return _LIMIT_RE.search(statement) is None


def add_limit_to_query(sql: str, limit: int) -> str:
    """Append ``LIMIT n`` to a statement, keeping a trailing semicolon last.

    Example:
        >>> add_limit_to_query("SELECT * FROM t;", 20)
        'SELECT * FROM t LIMIT 20;'
    """
    statement = sql.strip()
    ends_with_semicolon = statement.endswith(";")
    if ends_with_semicolon:
        statement = statement[:-1]

    statement = f"{statement} LIMIT {limit}"

    if ends_with_semicolon:
        statement += ";"
    return statement
