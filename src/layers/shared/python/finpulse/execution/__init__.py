"""Execution infrastructure for fault-tolerant event processing.

This module provides the components for reliable event handling:
- classify_error: Maps failures onto the ErrorKind taxonomy
- CircuitBreaker: Fails fast against a failing dependency
- RetryPolicy: Exponential backoff with jitter for retryable failures
- BatchEventProcessor: Per-record isolation with dead-lettering
"""

from finpulse.execution.circuit_breaker import (
    BUS_CIRCUIT,
    EXTERNAL_API_CIRCUIT,
    STORE_CIRCUIT,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitMetrics,
    CircuitState,
)
from finpulse.execution.dead_letter import (
    DeadLetterSink,
    LoggingDeadLetterSink,
    SqsDeadLetterSink,
    get_dead_letter_sink,
)
from finpulse.execution.error_classifier import (
    classify_error,
    is_retryable_kind,
)
from finpulse.execution.event_processor import (
    BatchEventProcessor,
    BatchResult,
    RecordError,
    RecordResult,
    records_from_event,
)
from finpulse.execution.retry_policy import (
    RETRY_CONFIGS,
    RetryConfig,
    RetryMetrics,
    RetryPolicy,
    RetryResult,
    calculate_delay,
    get_retry_policy,
    with_retry,
)

__all__ = [
    # Circuit breaker
    "BUS_CIRCUIT",
    "EXTERNAL_API_CIRCUIT",
    "STORE_CIRCUIT",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitMetrics",
    "CircuitState",
    # Dead letter
    "DeadLetterSink",
    "LoggingDeadLetterSink",
    "SqsDeadLetterSink",
    "get_dead_letter_sink",
    # Error classifier
    "classify_error",
    "is_retryable_kind",
    # Batch processing
    "BatchEventProcessor",
    "BatchResult",
    "RecordError",
    "RecordResult",
    "records_from_event",
    # Retry policy
    "RETRY_CONFIGS",
    "RetryConfig",
    "RetryMetrics",
    "RetryPolicy",
    "RetryResult",
    "calculate_delay",
    "get_retry_policy",
    "with_retry",
]
