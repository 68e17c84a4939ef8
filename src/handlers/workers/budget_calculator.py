"""Budget calculator worker.

Consumes Transaction Created/Updated/Deleted events (EventBridge directly or
through SQS), recomputes the spend of every matching budget and emits
Budget Threshold Reached events at 80% and 100% of the limit.
"""

import asyncio
import json
from typing import Any

import structlog

from finpulse.execution.circuit_breaker import BUS_CIRCUIT, CircuitBreakerRegistry
from finpulse.execution.dead_letter import get_dead_letter_sink
from finpulse.execution.event_processor import BatchEventProcessor, records_from_event
from finpulse.execution.retry_policy import get_retry_policy
from finpulse.models.events import EventEnvelope
from finpulse.services.budget_threshold import BudgetThresholdEngine
from finpulse.services.event_bus import EventBus
from finpulse.utils.logging import configure_logging

configure_logging()
logger = structlog.get_logger()

# Lives as long as the Lambda container
_registry = CircuitBreakerRegistry()
_engine: BudgetThresholdEngine | None = None


def get_engine() -> BudgetThresholdEngine:
    """Get the threshold engine (lazy initialization)."""
    global _engine
    if _engine is None:
        _engine = BudgetThresholdEngine(
            event_bus=EventBus(circuit=get_registry().get_circuit(BUS_CIRCUIT)),
        )
    return _engine


def get_registry() -> CircuitBreakerRegistry:
    """Get the process-wide circuit breaker registry."""
    return _registry


def handler(event: dict[str, Any], context: Any) -> dict:
    """Recalculate budgets for a batch of transaction events.

    Args:
        event: SQS event with records, or a single EventBridge event.
        context: Lambda context.

    Returns:
        Status, batch summary and batch item failures for partial retry.
    """
    records = records_from_event(event)
    logger.info("Processing transaction events", record_count=len(records))

    processor = BatchEventProcessor(
        retry_policy=get_retry_policy("store"),
        registry=get_registry(),
        dead_letter_sink=get_dead_letter_sink(),
        function_name=getattr(context, "function_name", None),
    )

    loop = asyncio.new_event_loop()
    try:
        summary = loop.run_until_complete(processor.process_batch(records, process_event))
    finally:
        loop.close()

    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "message": "Budget calculations processed",
                "summary": summary.to_dict(),
            },
            default=str,
        ),
        "batchItemFailures": summary.to_batch_item_failures(),
    }


def process_event(envelope: EventEnvelope) -> dict[str, Any]:
    """Run the threshold engine for one event.

    Args:
        envelope: Normalized event.

    Returns:
        The threshold outcome, or a skipped marker for non-transaction events.
    """
    if not envelope.is_transaction_event:
        logger.info(
            "Skipping non-transaction event",
            detail_type=envelope.detail_type,
            record_id=envelope.record_id,
        )
        return {"processed": False, "skipped": True}

    outcome = get_engine().on_transaction_event(envelope)

    logger.info(
        "Transaction event processed",
        detail_type=envelope.detail_type,
        user_id=envelope.user_id,
        processed=outcome.processed,
        notifications=len(outcome.notifications),
    )

    return outcome.to_dict()
