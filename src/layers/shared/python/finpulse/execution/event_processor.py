"""At-least-once batch processing of inbound event records.

Every record in a Lambda batch runs as its own task through the retry
policy and the store circuit breaker. A record that fails for good goes to
the dead-letter sink and is reported in the batch summary; it never stops
its siblings.

Usage:
    processor = BatchEventProcessor(registry=registry)
    summary = await processor.process_batch(records_from_event(event), handle_record)
    return {"batchItemFailures": summary.to_batch_item_failures()}
"""

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

import structlog

from finpulse.execution.circuit_breaker import STORE_CIRCUIT, CircuitBreakerRegistry
from finpulse.execution.dead_letter import DeadLetterSink, LoggingDeadLetterSink
from finpulse.execution.error_classifier import classify_error
from finpulse.execution.retry_policy import RetryConfig, RetryPolicy
from finpulse.models.events import EventEnvelope

logger = structlog.get_logger()

# Sync or async; called with one (normalized) record
RecordHandler = Callable[[Any], Any]


@dataclass
class RecordResult:
    """Successful outcome for one record."""

    record_id: str
    result: Any = None
    attempts: int = 1
    status: str = "success"


@dataclass
class RecordError:
    """Failed outcome for one record."""

    record_id: str
    error: str
    error_kind: str
    attempts: int = 0
    status: str = "failed"


@dataclass
class BatchResult:
    """Summary of a processed batch."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[RecordResult] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_batch_item_failures(self) -> list[dict[str, str]]:
        """Failed records in the SQS partial batch response shape."""
        return [
            {"itemIdentifier": error.record_id}
            for error in self.errors
            if error.record_id != "unknown"
        ]


def records_from_event(event: Any) -> list[Any]:
    """Get the records of a Lambda event; a bare EventBridge event is one record."""
    if isinstance(event, dict) and isinstance(event.get("Records"), list):
        return event["Records"]
    return [event]


def _raw_record_id(record: Any) -> str:
    if isinstance(record, dict):
        return record.get("messageId") or record.get("id") or "unknown"
    return "unknown"


class BatchEventProcessor:
    """Fans a batch of records out to a per-record handler.

    Example:
        processor = BatchEventProcessor(registry=CircuitBreakerRegistry())

        async def handle(envelope: EventEnvelope) -> dict:
            ...

        summary = await processor.process_batch(records, handle)
        print(summary.succeeded, summary.failed)
    """

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        registry: CircuitBreakerRegistry | None = None,
        dead_letter_sink: DeadLetterSink | None = None,
        circuit_id: str = STORE_CIRCUIT,
        normalize: Callable[[Any], Any] | None = EventEnvelope.from_record,
        concurrent: bool = True,
        function_name: str | None = None,
    ):
        """Initialize the processor.

        Args:
            retry_policy: Retry executor for each record.
            registry: Circuit breaker registry shared across invocations.
            dead_letter_sink: Destination for permanently failed records.
            circuit_id: Circuit guarding the per-record handler.
            normalize: Converts a raw record before handling (None to pass raw records).
            concurrent: Run record tasks concurrently rather than one by one.
                Sync handlers and dead-letter sinks (boto3 calls) still block
                the event loop, so records only overlap while awaiting retry delays.
            function_name: Reported in dead-letter entries.
        """
        self.retry_policy = retry_policy or RetryPolicy(RetryConfig.from_env())
        self.registry = registry or CircuitBreakerRegistry()
        self.dead_letter_sink = dead_letter_sink or LoggingDeadLetterSink()
        self.circuit_id = circuit_id
        self.normalize = normalize
        self.concurrent = concurrent
        self.function_name = function_name
        self.logger = logger.bind(service="batch_event_processor")

    async def process_batch(
        self,
        records: list[Any],
        handler: RecordHandler,
    ) -> BatchResult:
        """Process every record independently.

        Args:
            records: Raw inbound records.
            handler: Called with each (normalized) record; sync or async.

        Returns:
            BatchResult with per-record outcomes, in input order.
        """
        if self.concurrent:
            outcomes = await asyncio.gather(
                *(self._process_record(record, handler) for record in records)
            )
        else:
            outcomes = [await self._process_record(record, handler) for record in records]

        summary = BatchResult(total=len(records))
        for outcome in outcomes:
            if isinstance(outcome, RecordResult):
                summary.results.append(outcome)
            else:
                summary.errors.append(outcome)
        summary.succeeded = len(summary.results)
        summary.failed = len(summary.errors)

        self.logger.info(
            "Batch processing complete",
            total=summary.total,
            succeeded=summary.succeeded,
            failed=summary.failed,
        )

        return summary

    async def _process_record(
        self,
        record: Any,
        handler: RecordHandler,
    ) -> RecordResult | RecordError:
        record_id = _raw_record_id(record)
        context: dict[str, Any] = {"record_id": record_id, "function_name": self.function_name}

        item = record
        if self.normalize is not None:
            try:
                item = self.normalize(record)
            except Exception as e:
                self.logger.warning("Record could not be normalized", record_id=record_id, error=str(e))
                return self._dead_letter(record, e, context, attempts=0)

        if isinstance(item, EventEnvelope):
            record_id = item.record_id
            context.update(
                record_id=record_id,
                event_type=item.detail_type,
                user_id=item.user_id,
            )

        result = await self.retry_policy.execute(
            lambda: handler(item),
            context={"record_id": record_id},
            circuit=self.registry.get_circuit(self.circuit_id),
        )

        if result.success:
            return RecordResult(record_id=record_id, result=result.value, attempts=result.attempts)

        self.logger.error(
            "Record processing failed permanently",
            record_id=record_id,
            error=str(result.error),
            error_kind=result.error_kind.value if result.error_kind else None,
            attempts=result.attempts,
        )
        return self._dead_letter(record, result.error, context, attempts=result.attempts)

    def _dead_letter(
        self,
        record: Any,
        error: Exception,
        context: dict[str, Any],
        attempts: int,
    ) -> RecordError:
        error_kind = getattr(error, "error_kind", None) or classify_error(error)
        self.dead_letter_sink.send(record, error, context)
        return RecordError(
            record_id=context["record_id"],
            error=str(error),
            error_kind=getattr(error_kind, "value", str(error_kind)),
            attempts=attempts,
        )
