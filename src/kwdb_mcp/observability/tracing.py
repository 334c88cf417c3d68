"""Request tracing and context propagation for KWDB MCP Server.

Each tool call runs inside a request context whose ID is attached to every
log record emitted through a TracingLogger, so all lines belonging to one
statement can be correlated.
"""

import contextvars
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

# Context variable for current request ID
_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def generate_request_id() -> str:
    """Generate a unique request ID.

    Returns:
        UUID4-based request ID as a string.

    Example:
        >>> generate_request_id()
        'a1b2c3d4-e5f6-7890-abcd-ef1234567890'
    """
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    """Get the current request ID from context.

    Returns:
        Current request ID, or None outside a request context.

    Example:
        >>> async with request_context("req-1"):
        ...     get_request_id()
        'req-1'
    """
    return _request_id_var.get()


@asynccontextmanager
async def request_context(request_id: str | None = None) -> AsyncIterator[str]:
    """Context manager for request tracing.

    Creates a new request context with a unique (or provided) request ID
    that will be propagated through all async operations.

    Args:
        request_id: Optional request ID. If not provided, a new one is generated.

    Yields:
        The request ID for this context.

    Example:
        >>> async with request_context() as req_id:
        ...     logger.info("Executing read-query")
    """
    if request_id is None:
        request_id = generate_request_id()

    token = _request_id_var.set(request_id)
    try:
        yield request_id
    finally:
        _request_id_var.reset(token)


class TracingLogger:
    """Logger wrapper that automatically includes request context.

    Example:
        >>> logger = TracingLogger(__name__)
        >>> async with request_context():
        ...     logger.info("Query completed", extra={"row_count": 3})
    """

    def __init__(self, name: str):
        """Wrap the standard logger called ``name``.

        Args:
            name: Logger name, usually the module's ``__name__``.
        """
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log through the wrapped logger with ``request_id`` added to ``extra``."""
        extra = kwargs.pop("extra", {})
        request_id = get_request_id()

        # Only add request_id if not already present
        if request_id and "request_id" not in extra:
            extra["request_id"] = request_id

        kwargs["extra"] = extra
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an error message with traceback."""
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def get_tracing_logger(name: str) -> TracingLogger:
    """Get a logger that tags records with the current request ID.

    Args:
        name: Logger name, usually the module's ``__name__``.

    Returns:
        A TracingLogger for ``name``.

    Example:
        >>> logger = get_tracing_logger(__name__)
        >>> logger.info("Executing write-query")
    """
    return TracingLogger(name)
