"""Tests for gateway exceptions."""

import pytest

from bedrock_gateway.exceptions import (
    ConfigError,
    ErrorCode,
    GatewayError,
    RequestError,
    ResponseError,
    StorageError,
    TransportError,
    UnsupportedOperationError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow BRG-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("BRG-")
            assert len(code.value) == 8  # BRG-XXXX

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestGatewayError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        """Base exception stores message and code."""
        error = GatewayError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}

    def test_exception_with_details(self) -> None:
        """Exception can have additional details."""
        error = GatewayError(
            "Bad parameter",
            code=ErrorCode.PARAMETER_OUT_OF_RANGE,
            details={"field": "temperature", "value": 3.0},
        )
        assert error.details == {"field": "temperature", "value": 3.0}

    def test_to_dict(self) -> None:
        """Exception converts to API response dict."""
        error = GatewayError(
            "Something went wrong",
            code=ErrorCode.INTERNAL_ERROR,
            details={"trace_id": "abc123"},
        )
        assert error.to_dict() == {
            "error": {
                "code": "BRG-1000",
                "message": "Something went wrong",
                "details": {"trace_id": "abc123"},
            }
        }

    def test_str_representation(self) -> None:
        """Exception string is the message."""
        assert str(GatewayError("Test error")) == "Test error"


class TestErrorKinds:
    """Tests for the five error kinds."""

    @pytest.mark.parametrize(
        ("error_class", "code"),
        [
            (ConfigError, ErrorCode.CONFIGURATION_ERROR),
            (RequestError, ErrorCode.INVALID_REQUEST),
            (ResponseError, ErrorCode.MALFORMED_RESPONSE),
            (TransportError, ErrorCode.TRANSPORT_ERROR),
            (StorageError, ErrorCode.STORAGE_ERROR),
        ],
    )
    def test_default_code(self, error_class: type[GatewayError], code: ErrorCode) -> None:
        """Each kind has its own default code and derives from GatewayError."""
        error = error_class("failure")
        assert error.code == code
        assert isinstance(error, GatewayError)

    def test_custom_code(self) -> None:
        """Kinds accept a more specific code."""
        error = TransportError("slow down", code=ErrorCode.TRANSPORT_THROTTLED)
        assert error.code == ErrorCode.TRANSPORT_THROTTLED

    def test_unsupported_operation(self) -> None:
        """UnsupportedOperationError names backend and operation."""
        error = UnsupportedOperationError("pinecone", "search")
        assert isinstance(error, StorageError)
        assert error.code == ErrorCode.UNSUPPORTED_OPERATION
        assert error.details == {"backend": "pinecone", "operation": "search"}
        assert "search" in error.message
        assert "pinecone" in error.message
