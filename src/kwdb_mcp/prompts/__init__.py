"""Prompt guides for KWDB MCP Server."""

from kwdb_mcp.prompts.guides import (
    USE_CASE_GUIDES,
    UseCaseGuide,
    build_syntax_guide,
    db_description,
    get_read_example_queries,
    get_write_example_queries,
)

__all__ = [
    "USE_CASE_GUIDES",
    "UseCaseGuide",
    "build_syntax_guide",
    "db_description",
    "get_read_example_queries",
    "get_write_example_queries",
]
