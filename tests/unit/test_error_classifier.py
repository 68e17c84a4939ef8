"""Tests for the error classifier."""

import asyncio

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError
from pydantic import ValidationError as PydanticValidationError

from finpulse.execution.error_classifier import classify_error, is_retryable_kind
from finpulse.models.budget import Budget
from finpulse.utils.exceptions import (
    CircuitOpenError,
    ConflictError,
    ErrorKind,
    NonRetryableError,
    RetryableError,
    ValidationError,
)


def client_error(code: str, status: int = 400, message: str = "boom") -> ClientError:
    """Build a botocore ClientError."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "Operation",
    )


class StatusError(Exception):
    """Exception carrying an HTTP status code."""

    def __init__(self, message: str, status_code):
        super().__init__(message)
        self.status_code = status_code


class TestClassifyError:
    """Tests for classify_error."""

    @pytest.mark.parametrize(
        "code",
        [
            "ProvisionedThroughputExceededException",
            "ThrottlingException",
            "Throttling",
            "RequestLimitExceeded",
            "TooManyRequestsException",
        ],
    )
    def test_throttling_codes(self, code):
        """Dependency throttling codes classify as throttling."""
        assert classify_error(client_error(code)) == ErrorKind.THROTTLING

    @pytest.mark.parametrize("code", ["ValidationException", "ConditionalCheckFailedException"])
    def test_validation_codes(self, code):
        """Validation and conditional-check codes classify as validation."""
        assert classify_error(client_error(code)) == ErrorKind.VALIDATION

    def test_throttling_checked_before_status(self):
        """A throttling code wins over its 400 status."""
        error = client_error("ProvisionedThroughputExceededException", status=400)

        assert classify_error(error) == ErrorKind.THROTTLING

    def test_explicit_error_kind(self):
        """Finpulse exceptions carry their kind."""
        assert classify_error(ValidationError("bad")) == ErrorKind.VALIDATION
        assert classify_error(ConflictError("exists")) == ErrorKind.VALIDATION
        assert classify_error(RetryableError("later")) == ErrorKind.TRANSIENT
        assert classify_error(NonRetryableError("never")) == ErrorKind.PERMANENT
        assert classify_error(CircuitOpenError("store", "open")) == ErrorKind.PERMANENT

    def test_pydantic_validation_error(self):
        """A raw model validation failure classifies as validation."""
        with pytest.raises(PydanticValidationError) as exc_info:
            Budget(user_id="user-123", amount=0)

        assert classify_error(exc_info.value) == ErrorKind.VALIDATION
        assert not is_retryable_kind(classify_error(exc_info.value))

    def test_explicit_kind_overrides_message(self):
        """A signaled kind is trusted over message heuristics."""
        error = NonRetryableError("connection refused", error_kind=ErrorKind.VALIDATION)

        assert classify_error(error) == ErrorKind.VALIDATION

    def test_timeout_by_message(self):
        assert classify_error(Exception("Request timed out")) == ErrorKind.TIMEOUT
        assert classify_error(Exception("ETIMEDOUT")) == ErrorKind.TIMEOUT

    def test_timeout_by_type(self):
        assert classify_error(TimeoutError()) == ErrorKind.TIMEOUT
        assert classify_error(asyncio.TimeoutError()) == ErrorKind.TIMEOUT
        assert classify_error(ReadTimeoutError(endpoint_url="https://dynamodb")) == ErrorKind.TIMEOUT

    def test_network_by_message(self):
        assert classify_error(Exception("Network unreachable")) == ErrorKind.NETWORK
        assert classify_error(Exception("read ECONNRESET")) == ErrorKind.NETWORK

    def test_network_by_type(self):
        assert classify_error(ConnectionResetError()) == ErrorKind.NETWORK
        assert (
            classify_error(EndpointConnectionError(endpoint_url="https://events"))
            == ErrorKind.NETWORK
        )

    @pytest.mark.parametrize(
        "status,expected",
        [
            (500, ErrorKind.TRANSIENT),
            (503, ErrorKind.TRANSIENT),
            (429, ErrorKind.THROTTLING),
            (400, ErrorKind.PERMANENT),
            (404, ErrorKind.PERMANENT),
        ],
    )
    def test_status_buckets(self, status, expected):
        """HTTP status maps to a bucket when no other signal matches."""
        assert classify_error(StatusError("failed", status)) == expected

    def test_client_error_status(self):
        """ClientError status comes from the response metadata."""
        assert classify_error(client_error("InternalServerError", status=500)) == ErrorKind.TRANSIENT
        assert classify_error(client_error("AccessDeniedException", status=403)) == ErrorKind.PERMANENT

    def test_unknown_defaults_to_transient(self):
        assert classify_error(Exception("something odd")) == ErrorKind.TRANSIENT

    @pytest.mark.parametrize(
        "value",
        [None, "a string", 42, {"code": object()}, object(), StatusError("x", "not-a-status")],
    )
    def test_never_raises(self, value):
        """Malformed input still yields one of the kinds."""
        assert classify_error(value) in set(ErrorKind)


class TestIsRetryableKind:
    """Tests for is_retryable_kind."""

    def test_retryable_kinds(self):
        for kind in (ErrorKind.TRANSIENT, ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.THROTTLING):
            assert is_retryable_kind(kind) is True

    def test_terminal_kinds(self):
        assert is_retryable_kind(ErrorKind.PERMANENT) is False
        assert is_retryable_kind(ErrorKind.VALIDATION) is False
