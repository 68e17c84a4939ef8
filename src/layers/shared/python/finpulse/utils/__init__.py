"""Utility functions and helpers."""

from finpulse.utils.exceptions import (
    CircuitOpenError,
    ConflictError,
    ErrorKind,
    FinpulseError,
    NonRetryableError,
    NotFoundError,
    OperationFailedError,
    RetryableError,
    ValidationError,
)
from finpulse.utils.logging import configure_logging

__all__ = [
    # Logging
    "configure_logging",
    # Exceptions
    "CircuitOpenError",
    "ConflictError",
    "ErrorKind",
    "FinpulseError",
    "NonRetryableError",
    "NotFoundError",
    "OperationFailedError",
    "RetryableError",
    "ValidationError",
]
