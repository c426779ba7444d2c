"""Gateway exception hierarchy.

Every failure surfaced by the gateway is one of five kinds:
ConfigError, RequestError, ResponseError, TransportError, StorageError.
Each exception carries a structured error code.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    INTERNAL_ERROR = "BRG-1000"

    # Configuration errors (1xxx)
    CONFIGURATION_ERROR = "BRG-1001"
    UNKNOWN_MODEL = "BRG-1002"

    # Request construction errors (2xxx)
    INVALID_REQUEST = "BRG-2000"
    PARAMETER_OUT_OF_RANGE = "BRG-2001"
    CAPABILITY_NOT_SUPPORTED = "BRG-2002"

    # Response parsing errors (3xxx)
    MALFORMED_RESPONSE = "BRG-3000"
    STREAM_FRAMING_ERROR = "BRG-3001"
    CHECKSUM_MISMATCH = "BRG-3002"

    # Transport errors (4xxx)
    TRANSPORT_ERROR = "BRG-4000"
    TRANSPORT_TIMEOUT = "BRG-4001"
    TRANSPORT_THROTTLED = "BRG-4002"
    MODEL_ERROR = "BRG-4003"

    # Storage errors (5xxx)
    STORAGE_ERROR = "BRG-5000"
    STORAGE_CONNECTION_ERROR = "BRG-5001"
    DIMENSION_MISMATCH = "BRG-5002"
    UNSUPPORTED_OPERATION = "BRG-5003"


class GatewayError(Exception):
    """Base exception for all gateway errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigError(GatewayError):
    """Missing or invalid setup, e.g. an unresolvable model identifier."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class RequestError(GatewayError):
    """Local payload-construction violation. Never retried."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ResponseError(GatewayError):
    """Provider response or stream framing did not match the expected schema."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.MALFORMED_RESPONSE,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class TransportError(GatewayError):
    """Network or service failure reported by the transport.

    Retrying with backoff is the caller's responsibility.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TRANSPORT_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class StorageError(GatewayError):
    """Vector storage failure: connection, dimension mismatch, constraint violation."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORAGE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class UnsupportedOperationError(StorageError):
    """The active storage backend does not implement the operation."""

    def __init__(
        self,
        backend: str,
        operation: str,
    ) -> None:
        super().__init__(
            f"Operation '{operation}' is not supported by the {backend} backend",
            ErrorCode.UNSUPPORTED_OPERATION,
            {"backend": backend, "operation": operation},
        )
