"""Error classifier for retry decisions.

Maps a raised exception onto the failure taxonomy in ErrorKind. Signals are
checked in priority order:

1. Explicit ``error_kind`` carried by Finpulse exceptions, then pydantic
   validation errors
2. Dependency throttling codes (DynamoDB/EventBridge/SES)
3. Validation and conditional-check codes
4. Timeout (message or exception type)
5. Network (message or exception type)
6. HTTP status (5xx transient, 429 throttling, other 4xx permanent)
7. Default: transient

Usage:
    kind = classify_error(exc)
    if is_retryable_kind(kind):
        ...
"""

import asyncio
from typing import Any

import structlog
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from pydantic import ValidationError as PydanticValidationError

from finpulse.utils.exceptions import ErrorKind

logger = structlog.get_logger()

THROTTLING_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "Throttling",
    "RequestLimitExceeded",
    "TooManyRequestsException",
})

VALIDATION_CODES = frozenset({
    "ValidationException",
    "ConditionalCheckFailedException",
})

TIMEOUT_PATTERNS = ("timeout", "timed out", "etimedout")
NETWORK_PATTERNS = ("network", "connection", "econnreset", "enotfound")

RETRYABLE_KINDS = frozenset({
    ErrorKind.TRANSIENT,
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
    ErrorKind.THROTTLING,
})


def is_retryable_kind(kind: ErrorKind) -> bool:
    """Check whether a failure kind is worth another attempt."""
    return kind in RETRYABLE_KINDS


def classify_error(error: Any) -> ErrorKind:
    """Classify a failure into an ErrorKind.

    Never raises; anything unrecognized (including malformed input that is
    not an exception at all) is treated as transient.

    Args:
        error: The raised exception.

    Returns:
        ErrorKind classification.
    """
    try:
        return _classify(error)
    except Exception as e:  # pragma: no cover
        logger.warning("Error classification failed", error=repr(e))
        return ErrorKind.TRANSIENT


def _classify(error: Any) -> ErrorKind:
    explicit = getattr(error, "error_kind", None)
    if explicit is not None:
        try:
            return ErrorKind(explicit)
        except ValueError:
            pass

    if isinstance(error, PydanticValidationError):
        return ErrorKind.VALIDATION

    code = _error_code(error)
    message = _error_message(error)

    if code in THROTTLING_CODES:
        return ErrorKind.THROTTLING

    if code in VALIDATION_CODES:
        return ErrorKind.VALIDATION

    if (
        any(pattern in message for pattern in TIMEOUT_PATTERNS)
        or code == "TimeoutError"
        or isinstance(error, (TimeoutError, asyncio.TimeoutError, ReadTimeoutError, ConnectTimeoutError))
    ):
        return ErrorKind.TIMEOUT

    if (
        any(pattern in message for pattern in NETWORK_PATTERNS)
        or isinstance(error, (ConnectionError, EndpointConnectionError))
    ):
        return ErrorKind.NETWORK

    status = _status_code(error)
    if status is not None:
        if 500 <= status < 600:
            return ErrorKind.TRANSIENT
        if status == 429:
            return ErrorKind.THROTTLING
        if 400 <= status < 500:
            return ErrorKind.PERMANENT

    return ErrorKind.TRANSIENT


def _error_code(error: Any) -> str | None:
    """Extract a dependency error code (e.g. a botocore Error.Code)."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code
    return None


def _error_message(error: Any) -> str:
    try:
        return str(error).lower()
    except Exception:
        return ""


def _status_code(error: Any) -> int | None:
    """Extract an HTTP status from the error, if it carries one."""
    if isinstance(error, ClientError):
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    else:
        status = getattr(error, "status_code", None)
        if status is None:
            status = getattr(error, "code", None)

    if isinstance(status, bool):
        return None
    if isinstance(status, int):
        return status
    if isinstance(status, str) and status.isdigit():
        return int(status)
    return None
