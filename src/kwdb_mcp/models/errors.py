"""Custom exceptions and error codes for KWDB MCP Server.

This module defines a hierarchy of exceptions for different error scenarios
and error codes for structured error reporting. Every tool invocation turns
these into an error envelope instead of letting them reach the transport.
"""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the application."""

    # Success
    SUCCESS = "success"

    # Client errors
    INVALID_REQUEST = "invalid_request"
    VALIDATION_FAILED = "validation_failed"
    OPERATION_NOT_ALLOWED = "operation_not_allowed"

    # Configuration and lifecycle errors
    CONFIG_ERROR = "config_error"
    POOL_NOT_INITIALIZED = "pool_not_initialized"

    # Server errors
    INTERNAL_ERROR = "internal_error"
    DATABASE_ERROR = "database_error"
    DATABASE_CONNECTION_ERROR = "database_connection_error"
    EXECUTION_TIMEOUT = "execution_timeout"


class ErrorDetail:
    """Structured error detail information."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize error detail.

        Args:
            code: Error code identifier.
            message: Human-readable error message.
            details: Optional additional context.
        """
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation.

        Returns:
            dict: Dictionary containing error information.
        """
        result: dict[str, Any] = {
            "code": str(self.code),
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"ErrorDetail(code={self.code}, message={self.message!r})"


class KwdbMcpError(Exception):
    """Base exception for all KWDB MCP Server errors.

    All custom exceptions in this application should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize base error.

        Args:
            message: Human-readable error message.
            code: Error code identifier.
            details: Optional additional context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_error_detail(self) -> ErrorDetail:
        """Convert exception to ErrorDetail.

        Returns:
            ErrorDetail: Structured error detail.
        """
        return ErrorDetail(code=self.code, message=self.message, details=self.details)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code}, message={self.message!r})"


class ConfigError(KwdbMcpError):
    """Exception raised for invalid configuration, e.g. an empty connection string."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.CONFIG_ERROR, details=details)


class ValidationError(KwdbMcpError):
    """Exception raised for invalid request input such as unsafe identifiers."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.VALIDATION_FAILED, details=details)


class PoolNotInitializedError(KwdbMcpError):
    """Exception raised when the connection pool is used before initialization."""

    def __init__(
        self,
        message: str = "database pool not initialized",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=ErrorCode.POOL_NOT_INITIALIZED, details=details)


class OperationNotAllowedError(KwdbMcpError):
    """Exception raised when a statement is sent to the wrong tool.

    A write statement (INSERT, CREATE, ...) on the read path or a read
    statement on the write path.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.OPERATION_NOT_ALLOWED, details=details)


class DatabaseError(KwdbMcpError):
    """Exception raised for database operation failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize database error.

        Args:
            message: Error message describing database failure.
            details: Optional database error details (sqlstate, statement).
        """
        super().__init__(message=message, code=ErrorCode.DATABASE_ERROR, details=details)


class DatabaseConnectionError(KwdbMcpError):
    """Exception raised when the database stays unreachable after reinitialization."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.DATABASE_CONNECTION_ERROR, details=details)


class ExecutionTimeoutError(KwdbMcpError):
    """Exception raised when borrowing or executing exceeds its deadline.

    The statement may still have been applied on the server side.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.EXECUTION_TIMEOUT, details=details)
