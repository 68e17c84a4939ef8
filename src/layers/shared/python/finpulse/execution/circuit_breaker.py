"""Circuit breaker for calls to unreliable dependencies.

Implements the Circuit Breaker pattern so that repeated failures against the
same dependency (DynamoDB, EventBridge, an external API) fail fast instead of
waiting out a full retry schedule.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Dependency is failing, requests are rejected immediately
- HALF_OPEN: Testing if the dependency has recovered

Transitions:
- CLOSED → OPEN: After failure_threshold consecutive failures
- OPEN → HALF_OPEN: On the first call after recovery_timeout seconds since the last failure
- HALF_OPEN → CLOSED: After success_threshold consecutive successes
- HALF_OPEN → OPEN: On any failure

State is process-scoped. A cold start begins with every circuit closed.
"""

import inspect
import os
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from finpulse.utils.exceptions import CircuitOpenError

logger = structlog.get_logger()

T = TypeVar("T")

# Dependencies guarded by the workers
STORE_CIRCUIT = "store"
BUS_CIRCUIT = "bus"
EXTERNAL_API_CIRCUIT = "external_api"
DEFAULT_CIRCUITS = (STORE_CIRCUIT, BUS_CIRCUIT, EXTERNAL_API_CIRCUIT)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""

    failure_threshold: int = 5  # Failures before opening
    success_threshold: int = 2  # Half-open successes needed to close
    recovery_timeout: float = 60.0  # Seconds after last failure before half-open

    @classmethod
    def from_env(cls) -> "CircuitBreakerConfig":
        """Build a config from CIRCUIT_* environment variables."""
        return cls(
            failure_threshold=int(os.environ.get("CIRCUIT_FAILURE_THRESHOLD", "5")),
            success_threshold=int(os.environ.get("CIRCUIT_HALF_OPEN_SUCCESSES", "2")),
            recovery_timeout=float(os.environ.get("CIRCUIT_RECOVERY_TIMEOUT", "60")),
        )


@dataclass
class CircuitMetrics:
    """Counters for a circuit breaker."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    consecutive_failures: int = 0
    half_open_successes: int = 0
    last_failure_time: float | None = None
    state_changed_at: float = field(default_factory=time.monotonic)


class CircuitBreaker:
    """Per-dependency circuit breaker.

    All state transitions happen under a lock so concurrent record tasks
    (threads or coroutines) observe a consistent state. The guarded operation
    itself runs outside the lock.

    Example:
        breaker = CircuitBreaker("store")
        budgets = await breaker.call(lambda: repo.list_for_user(user_id))
    """

    def __init__(
        self,
        circuit_id: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the circuit breaker.

        Args:
            circuit_id: Dependency name (e.g. "store").
            config: Thresholds and timeouts.
            clock: Monotonic time source in seconds.
        """
        self.circuit_id = circuit_id
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self.state = CircuitState.CLOSED
        self.metrics = CircuitMetrics(state_changed_at=clock())

    async def call(self, operation: Callable[[], T | Awaitable[T]]) -> T:
        """Run an operation through the breaker.

        Args:
            operation: Sync or async callable taking no arguments.

        Returns:
            The operation result.

        Raises:
            CircuitOpenError: If the circuit is open and recovery timeout has not elapsed.
        """
        self.before_call()

        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def call_sync(self, operation: Callable[[], T]) -> T:
        """Run a blocking operation through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and recovery timeout has not elapsed.
        """
        self.before_call()

        try:
            result = operation()
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def before_call(self) -> None:
        """Admit or reject a call, moving OPEN → HALF_OPEN once the timeout elapses."""
        with self._lock:
            if self.state != CircuitState.OPEN:
                return

            elapsed = self._clock() - (self.metrics.last_failure_time or 0.0)
            if elapsed >= self.config.recovery_timeout:
                self._transition_to(CircuitState.HALF_OPEN)
                return

            self.metrics.rejected_calls += 1
            state = self.state

        raise CircuitOpenError(self.circuit_id, state.value)

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            self.metrics.total_calls += 1
            self.metrics.successful_calls += 1

            if self.state == CircuitState.HALF_OPEN:
                self.metrics.half_open_successes += 1
                if self.metrics.half_open_successes >= self.config.success_threshold:
                    self.metrics.consecutive_failures = 0
                    self._transition_to(CircuitState.CLOSED)
            else:
                self.metrics.consecutive_failures = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        with self._lock:
            self.metrics.total_calls += 1
            self.metrics.failed_calls += 1
            self.metrics.consecutive_failures += 1
            self.metrics.last_failure_time = self._clock()

            if self.state == CircuitState.HALF_OPEN:
                # Any failure in half-open returns to open
                self._transition_to(CircuitState.OPEN)
            elif (
                self.state == CircuitState.CLOSED
                and self.metrics.consecutive_failures >= self.config.failure_threshold
            ):
                self._transition_to(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the circuit back to closed with fresh counters."""
        with self._lock:
            self.state = CircuitState.CLOSED
            self.metrics = CircuitMetrics(state_changed_at=self._clock())

        logger.info("Circuit breaker manually reset", circuit_id=self.circuit_id)

    def snapshot(self) -> dict[str, Any]:
        """Get a point-in-time view of state and counters."""
        with self._lock:
            return {
                "state": self.state.value,
                "failure_count": self.metrics.consecutive_failures,
                "last_failure_time": self.metrics.last_failure_time,
                "half_open_successes": self.metrics.half_open_successes,
                "metrics": {
                    "total_calls": self.metrics.total_calls,
                    "successful_calls": self.metrics.successful_calls,
                    "failed_calls": self.metrics.failed_calls,
                    "rejected_calls": self.metrics.rejected_calls,
                },
                "config": {
                    "failure_threshold": self.config.failure_threshold,
                    "success_threshold": self.config.success_threshold,
                    "recovery_timeout": self.config.recovery_timeout,
                },
            }

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state. Caller holds the lock."""
        old_state = self.state
        self.state = new_state
        self.metrics.state_changed_at = self._clock()
        self.metrics.half_open_successes = 0

        logger.info(
            "Circuit breaker state transition",
            circuit_id=self.circuit_id,
            old_state=old_state.value,
            new_state=new_state.value,
            consecutive_failures=self.metrics.consecutive_failures,
        )


class CircuitBreakerRegistry:
    """Registry holding one circuit breaker per dependency.

    Built once at cold start and passed to the retry policy and batch
    processor, so every invocation served by the same container shares it.

    Example:
        registry = CircuitBreakerRegistry()
        store = registry.get_circuit("store")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        circuit_ids: tuple[str, ...] = DEFAULT_CIRCUITS,
    ):
        """Initialize the registry.

        Args:
            default_config: Configuration for new circuit breakers.
            clock: Time source shared by all breakers.
            circuit_ids: Circuits created eagerly.
        """
        self.default_config = default_config or CircuitBreakerConfig.from_env()
        self._clock = clock
        self._lock = threading.Lock()
        self._circuits: dict[str, CircuitBreaker] = {}
        self.logger = logger.bind(service="circuit_breaker_registry")

        for circuit_id in circuit_ids:
            self.get_circuit(circuit_id)

    def get_circuit(
        self,
        circuit_id: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker.

        Args:
            circuit_id: Dependency name (e.g., "store").
            config: Optional custom configuration for a new breaker.

        Returns:
            CircuitBreaker instance.
        """
        with self._lock:
            if circuit_id not in self._circuits:
                self._circuits[circuit_id] = CircuitBreaker(
                    circuit_id=circuit_id,
                    config=config or self.default_config,
                    clock=self._clock,
                )
            return self._circuits[circuit_id]

    def is_open(self, circuit_id: str) -> bool:
        """Check if a circuit is open."""
        circuit = self._circuits.get(circuit_id)
        return circuit is not None and circuit.state == CircuitState.OPEN

    def reset_circuit(self, circuit_id: str) -> None:
        """Reset a circuit breaker to closed state."""
        circuit = self._circuits.get(circuit_id)
        if circuit:
            circuit.reset()

    def get_all_circuits(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers.

        Returns:
            Dict of circuit snapshots keyed by circuit id.
        """
        with self._lock:
            circuits = list(self._circuits.items())
        return {circuit_id: circuit.snapshot() for circuit_id, circuit in circuits}
