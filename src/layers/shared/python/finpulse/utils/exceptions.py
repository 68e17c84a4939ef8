"""Custom exception classes for Finpulse."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure taxonomy used for retry decisions."""

    TRANSIENT = "transient"  # Temporary failure, retry likely to succeed
    PERMANENT = "permanent"  # Won't succeed on retry
    THROTTLING = "throttling"  # Rate limited by a dependency
    VALIDATION = "validation"  # Bad input or failed conditional write
    TIMEOUT = "timeout"
    NETWORK = "network"


class FinpulseError(Exception):
    """Base exception for all Finpulse errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
        error_kind: ErrorKind | None = None,
    ):
        """Initialize FinpulseError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
            error_kind: Explicit classification, consulted before any heuristic.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}
        self.error_kind = error_kind

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.error_kind:
            result["error_kind"] = self.error_kind.value
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(FinpulseError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
            error_kind=ErrorKind.VALIDATION,
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors)


class NotFoundError(FinpulseError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "Budget", "User").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
            error_kind=ErrorKind.PERMANENT,
        )


class ConflictError(FinpulseError):
    """Raised when a conditional write fails (item exists, missing, or modified)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        conflict_type: str | None = None,
    ):
        """Initialize ConflictError."""
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
            error_kind=ErrorKind.VALIDATION,
        )


class RetryableError(FinpulseError):
    """Raised for failures that are expected to succeed on a later attempt."""

    def __init__(
        self,
        message: str,
        error_kind: ErrorKind = ErrorKind.TRANSIENT,
        retry_after: float | None = None,
    ):
        """Initialize RetryableError.

        Args:
            message: Error message.
            error_kind: Retryable kind (transient, throttling, timeout, network).
            retry_after: Dependency-suggested delay in seconds, if any.
        """
        self.retry_after = retry_after
        super().__init__(
            message=message,
            error_code="RETRYABLE_ERROR",
            status_code=503,
            details={"retry_after_seconds": retry_after} if retry_after else None,
            error_kind=error_kind,
        )


class NonRetryableError(FinpulseError):
    """Raised for failures that must not be retried."""

    def __init__(
        self,
        message: str,
        error_kind: ErrorKind = ErrorKind.PERMANENT,
    ):
        """Initialize NonRetryableError."""
        super().__init__(
            message=message,
            error_code="NON_RETRYABLE_ERROR",
            status_code=_status_for_kind(error_kind),
            error_kind=error_kind,
        )


class CircuitOpenError(FinpulseError):
    """Raised when a circuit is open and the call is rejected without running."""

    def __init__(self, circuit_id: str, state: str):
        self.circuit_id = circuit_id
        self.state = state
        super().__init__(
            message=f"Circuit breaker '{circuit_id}' is {state}",
            error_code="CIRCUIT_OPEN",
            status_code=503,
            details={"circuit_id": circuit_id, "state": state},
            error_kind=ErrorKind.PERMANENT,
        )


class OperationFailedError(FinpulseError):
    """Terminal failure raised once an operation will not be attempted again."""

    def __init__(
        self,
        last_error: Exception,
        attempts: int,
        error_kind: ErrorKind,
        last_error_kind: ErrorKind | None = None,
    ):
        """Initialize OperationFailedError.

        Args:
            last_error: The failure from the final attempt.
            attempts: Number of attempts made.
            error_kind: Kind of the terminal outcome.
            last_error_kind: Classified kind of the final underlying failure.
        """
        self.last_error = last_error
        self.attempts = attempts
        self.last_error_kind = last_error_kind or error_kind
        super().__init__(
            message=f"Operation failed after {attempts} attempt(s). Last error: {last_error}",
            error_code="OPERATION_FAILED",
            status_code=_status_for_kind(self.last_error_kind),
            details={
                "attempts": attempts,
                "last_error_kind": self.last_error_kind.value,
            },
            error_kind=error_kind,
        )


def _status_for_kind(kind: ErrorKind) -> int:
    """Map a failure kind to the HTTP status the API layer reports."""
    if kind == ErrorKind.VALIDATION:
        return 400
    if kind == ErrorKind.PERMANENT:
        return 422
    return 503
