"""Retry policy with exponential backoff and jitter.

Provides the retry executor used by the event workers:
- Exponential backoff capped at max_delay
- Symmetric ±25% jitter to spread retries from concurrent invocations
- Classification of failures through classify_error
- Every attempt routed through a circuit breaker when one is given

Usage:
    policy = RetryPolicy(RetryConfig.from_env())

    async def my_operation():
        return await external_api_call()

    result = await policy.execute(my_operation, circuit=registry.get_circuit("store"))
"""

import asyncio
import inspect
import os
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from finpulse.execution.circuit_breaker import CircuitBreaker
from finpulse.execution.error_classifier import classify_error, is_retryable_kind
from finpulse.utils.exceptions import ErrorKind, OperationFailedError

logger = structlog.get_logger()

T = TypeVar("T")

JITTER_FACTOR = 0.25


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3  # Retries after the initial attempt
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 30.0  # Maximum delay cap
    backoff_multiplier: float = 2.0
    jitter_enabled: bool = True

    @classmethod
    def from_env(cls) -> "RetryConfig":
        """Build a config from RETRY_* environment variables."""
        return cls(
            max_retries=int(os.environ.get("RETRY_MAX_RETRIES", "3")),
            base_delay=float(os.environ.get("RETRY_BASE_DELAY", "1.0")),
            max_delay=float(os.environ.get("RETRY_MAX_DELAY", "30.0")),
            backoff_multiplier=float(os.environ.get("RETRY_BACKOFF_MULTIPLIER", "2.0")),
            jitter_enabled=os.environ.get("RETRY_JITTER_ENABLED", "true").lower() == "true",
        )


@dataclass
class RetryResult:
    """Result of a retry operation."""

    success: bool
    value: Any = None
    error: OperationFailedError | None = None
    attempts: int = 0
    total_delay: float = 0.0
    error_kind: ErrorKind | None = None


@dataclass
class RetryMetrics:
    """Metrics for retry operations."""

    total_attempts: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    total_delay_seconds: float = 0.0
    failures_by_kind: dict[ErrorKind, int] = field(default_factory=dict)


def calculate_delay(
    attempt: int,
    config: RetryConfig,
    rng: Callable[[], float] = random.random,
) -> float:
    """Calculate the wait before a retry.

    Args:
        attempt: Retry number, 1-based (the initial try is not counted).
        config: Retry configuration.
        rng: Source of uniform floats in [0, 1).

    Returns:
        Delay in seconds, never negative.
    """
    delay = min(
        config.base_delay * (config.backoff_multiplier ** (attempt - 1)),
        config.max_delay,
    )

    if config.jitter_enabled:
        delay += delay * JITTER_FACTOR * (rng() * 2 - 1)

    return max(delay, 0.0)


class RetryPolicy:
    """Retry executor with exponential backoff.

    The initial attempt runs immediately; each retry up to max_retries waits
    calculate_delay(retry) first. Permanent and validation failures (and
    circuit-open rejections) stop immediately. Retries that run out become a
    permanent OperationFailedError wrapping the last failure.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=5, base_delay=0.5))

        result = await policy.execute(async_operation)
        if result.success:
            print(f"Success after {result.attempts} attempts")
        else:
            print(f"Failed: {result.error}")
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            sleep: Awaitable sleep used between attempts.
            rng: Randomness source for jitter.
        """
        self.config = config or RetryConfig()
        self.metrics = RetryMetrics()
        self._sleep = sleep
        self._rng = rng
        self.logger = logger.bind(service="retry_policy")

    async def execute(
        self,
        func: Callable[[], T | Awaitable[T]],
        context: dict[str, Any] | None = None,
        circuit: CircuitBreaker | None = None,
    ) -> RetryResult:
        """Execute a function with retry logic.

        Args:
            func: Sync or async function to execute.
            context: Optional context for logging.
            circuit: Circuit breaker guarding each attempt.

        Returns:
            RetryResult with outcome.
        """
        context = context or {}
        attempts = 0
        total_delay = 0.0
        delay = 0.0

        while True:
            if delay > 0:
                await self._sleep(delay)

            attempts += 1
            self.metrics.total_attempts += 1

            try:
                if circuit is not None:
                    value = await circuit.call(func)
                else:
                    value = await _invoke(func)

            except Exception as e:
                kind = classify_error(e)
                self.metrics.failures_by_kind[kind] = self.metrics.failures_by_kind.get(kind, 0) + 1

                if not is_retryable_kind(kind):
                    self.logger.warning(
                        "Operation failed permanently",
                        error=str(e),
                        error_kind=kind.value,
                        attempts=attempts,
                        **context,
                    )
                    return self._failure(e, attempts, total_delay, kind, kind)

                if attempts > self.config.max_retries:
                    self.logger.warning(
                        "Operation failed after max retries",
                        error=str(e),
                        error_kind=kind.value,
                        attempts=attempts,
                        total_delay=total_delay,
                        **context,
                    )
                    return self._failure(e, attempts, total_delay, ErrorKind.PERMANENT, kind)

                delay = calculate_delay(attempts, self.config, self._rng)
                retry_after = getattr(e, "retry_after", None)
                if isinstance(retry_after, (int, float)) and retry_after > delay:
                    delay = min(float(retry_after), self.config.max_delay)
                total_delay += delay

                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    error_kind=kind.value,
                    attempt=attempts,
                    max_retries=self.config.max_retries,
                    next_delay=round(delay, 3),
                    **context,
                )
                continue

            self.metrics.successful_operations += 1
            self.metrics.total_delay_seconds += total_delay

            self.logger.debug(
                "Operation succeeded",
                attempts=attempts,
                total_delay=total_delay,
                **context,
            )

            return RetryResult(
                success=True,
                value=value,
                attempts=attempts,
                total_delay=total_delay,
            )

    def _failure(
        self,
        error: Exception,
        attempts: int,
        total_delay: float,
        terminal_kind: ErrorKind,
        last_kind: ErrorKind,
    ) -> RetryResult:
        self.metrics.failed_operations += 1
        self.metrics.total_delay_seconds += total_delay

        terminal = OperationFailedError(
            last_error=error,
            attempts=attempts,
            error_kind=terminal_kind,
            last_error_kind=last_kind,
        )
        terminal.__cause__ = error

        return RetryResult(
            success=False,
            error=terminal,
            attempts=attempts,
            total_delay=total_delay,
            error_kind=terminal_kind,
        )

    def get_metrics(self) -> dict[str, Any]:
        """Get retry metrics.

        Returns:
            Dict of metrics.
        """
        return {
            "total_attempts": self.metrics.total_attempts,
            "successful_operations": self.metrics.successful_operations,
            "failed_operations": self.metrics.failed_operations,
            "total_delay_seconds": self.metrics.total_delay_seconds,
            "failures_by_kind": {
                k.value: v for k, v in self.metrics.failures_by_kind.items()
            },
        }


async def _invoke(func: Callable[[], T | Awaitable[T]]) -> T:
    result = func()
    if inspect.isawaitable(result):
        result = await result
    return result


# Preset configurations for the guarded dependencies
RETRY_CONFIGS = {
    "default": RetryConfig(),
    "store": RetryConfig(
        max_retries=3,
        base_delay=0.5,
        max_delay=10.0,
    ),
}


def get_retry_policy(preset: str = "default") -> RetryPolicy:
    """Get a retry policy with a preset configuration.

    Args:
        preset: Name of the preset (default, store).

    Returns:
        RetryPolicy instance.
    """
    config = RETRY_CONFIGS.get(preset, RETRY_CONFIGS["default"])
    return RetryPolicy(config)


async def with_retry(
    func: Callable[[], T | Awaitable[T]],
    config: RetryConfig | None = None,
    context: dict[str, Any] | None = None,
    circuit: CircuitBreaker | None = None,
) -> T:
    """Execute a function with retry logic.

    Convenience function for one-off retries.

    Args:
        func: Function to execute.
        config: Optional retry configuration.
        context: Optional context for logging.
        circuit: Optional circuit breaker guarding each attempt.

    Returns:
        Function result.

    Raises:
        OperationFailedError: Once no further attempt will be made.
    """
    policy = RetryPolicy(config)
    result = await policy.execute(func, context, circuit)

    if result.success:
        return result.value

    raise result.error
