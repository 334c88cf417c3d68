"""Unit tests for logging, tracing and metrics helpers."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest
from prometheus_client import REGISTRY

from kwdb_mcp.models.pool import PoolStats
from kwdb_mcp.observability.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    TextFormatter,
    configure_logging,
    redact_text,
)
from kwdb_mcp.observability.metrics import metrics
from kwdb_mcp.observability.tracing import get_request_id, get_tracing_logger, request_context


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(msg: str, *args: object, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("kwdb_mcp.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedaction:
    """Tests for credential redaction."""

    def test_redact_dsn(self) -> None:
        text = "connecting to postgresql://root:secret@db:26257/kwdb"
        assert redact_text(text) == "connecting to postgresql://root:***@db:26257/kwdb"

    def test_redact_key_value(self) -> None:
        assert redact_text("host=db password=secret user=root") == "host=db password=*** user=root"

    def test_filter_masks_message_and_args(self) -> None:
        record = make_record("pool for %s", "postgresql://root:secret@db:26257/kwdb")

        SensitiveDataFilter().filter(record)

        assert record.getMessage() == "pool for postgresql://root:***@db:26257/kwdb"

    def test_filter_redacts_sensitive_extras(self) -> None:
        record = make_record(
            "starting",
            dsn="postgresql://root:secret@db/kwdb",
            details={"password": "secret", "table": "sensors"},
        )

        SensitiveDataFilter().filter(record)

        assert record.dsn == "***REDACTED***"
        assert record.details == {"password": "***REDACTED***", "table": "sensors"}


class TestFormatters:
    """Tests for the JSON and text formatters."""

    def test_json_formatter(self) -> None:
        record = make_record("read-query returned 3 rows", request_id="req-1", row_count=3)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "read-query returned 3 rows"
        assert payload["level"] == "INFO"
        assert payload["request_id"] == "req-1"
        assert payload["extra"] == {"row_count": 3}

    def test_text_formatter(self) -> None:
        record = make_record("hello", request_id="req-2")

        line = TextFormatter().format(record)

        assert "[INFO] kwdb_mcp.test - hello" in line
        assert line.endswith("[request_id=req-2]")

    def test_configure_logging_uses_stderr(self, restore_root_logger: None) -> None:
        configure_logging(level="DEBUG", log_format="json")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG


class TestTracing:
    """Tests for request context propagation."""

    @pytest.mark.asyncio
    async def test_request_context(self) -> None:
        assert get_request_id() is None

        async with request_context("req-42") as request_id:
            assert request_id == "req-42"
            assert get_request_id() == "req-42"

        assert get_request_id() is None

    @pytest.mark.asyncio
    async def test_generated_request_id(self) -> None:
        async with request_context() as request_id:
            assert request_id
            assert get_request_id() == request_id

    @pytest.mark.asyncio
    async def test_tracing_logger_adds_request_id(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_tracing_logger("kwdb_mcp.test")

        with caplog.at_level(logging.INFO, logger="kwdb_mcp.test"):
            async with request_context("req-7"):
                logger.info("inside request")

        assert caplog.records[-1].request_id == "req-7"


class TestMetrics:
    """Tests for the metrics collector."""

    def test_rejections_counted(self) -> None:
        labels = {"path": "read", "operation": "DROP"}
        before = REGISTRY.get_sample_value("kwdb_mcp_statements_rejected_total", labels) or 0.0

        metrics.increment_statement_rejected(path="read", operation="DROP")

        assert REGISTRY.get_sample_value("kwdb_mcp_statements_rejected_total", labels) == before + 1

    def test_pool_gauges_follow_bound_source(self) -> None:
        current = {"stats": PoolStats(open_connections=4, idle=1, in_use=3)}
        metrics.bind_pool_stats(lambda: current["stats"])

        assert REGISTRY.get_sample_value("kwdb_mcp_pool_connections", {"state": "open"}) == 4
        assert REGISTRY.get_sample_value("kwdb_mcp_pool_connections", {"state": "in_use"}) == 3

        current["stats"] = PoolStats(open_connections=2, idle=2, in_use=0)

        assert REGISTRY.get_sample_value("kwdb_mcp_pool_connections", {"state": "open"}) == 2
        assert REGISTRY.get_sample_value("kwdb_mcp_pool_connections", {"state": "idle"}) == 2
        assert REGISTRY.get_sample_value("kwdb_mcp_pool_connections", {"state": "in_use"}) == 0

        metrics.bind_pool_stats(PoolStats)
        assert REGISTRY.get_sample_value("kwdb_mcp_pool_connections", {"state": "open"}) == 0
