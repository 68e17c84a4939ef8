"""Notification worker.

Delivers an alert for every Budget Threshold Reached event and records it in
the user's notification history.
"""

import asyncio
import json
from functools import partial
from typing import Any

import structlog

from finpulse.execution.circuit_breaker import (
    BUS_CIRCUIT,
    EXTERNAL_API_CIRCUIT,
    CircuitBreakerRegistry,
)
from finpulse.execution.dead_letter import get_dead_letter_sink
from finpulse.execution.event_processor import BatchEventProcessor, records_from_event
from finpulse.execution.retry_policy import get_retry_policy
from finpulse.models.events import EventEnvelope, EventType
from finpulse.models.notification import ThresholdEvent
from finpulse.services.event_bus import EventBus
from finpulse.services.notification_channels import get_channel
from finpulse.services.notification_dispatcher import NotificationDispatcher
from finpulse.utils.exceptions import ErrorKind, NonRetryableError
from finpulse.utils.logging import configure_logging

configure_logging()
logger = structlog.get_logger()

# Lives as long as the Lambda container
_registry = CircuitBreakerRegistry()
_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """Get the notification dispatcher (lazy initialization)."""
    global _dispatcher
    if _dispatcher is None:
        registry = get_registry()
        _dispatcher = NotificationDispatcher(
            event_bus=EventBus(circuit=registry.get_circuit(BUS_CIRCUIT)),
            channel_factory=partial(get_channel, circuit=registry.get_circuit(EXTERNAL_API_CIRCUIT)),
        )
    return _dispatcher


def get_registry() -> CircuitBreakerRegistry:
    """Get the process-wide circuit breaker registry."""
    return _registry


def handler(event: dict[str, Any], context: Any) -> dict:
    """Dispatch notifications for a batch of threshold events.

    Args:
        event: SQS event with records, or a single EventBridge event.
        context: Lambda context.

    Returns:
        Status, batch summary and batch item failures for partial retry.
    """
    records = records_from_event(event)
    logger.info(
        "Processing notification events",
        record_count=len(records),
        circuits=get_registry().get_all_circuits(),
    )

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
                "message": "Notifications processed successfully",
                "summary": summary.to_dict(),
            },
            default=str,
        ),
        "batchItemFailures": summary.to_batch_item_failures(),
    }


def process_event(envelope: EventEnvelope) -> dict[str, Any]:
    """Dispatch the notification for one threshold event.

    Raises:
        NonRetryableError: If userId or budgetId is missing.
        ValidationError: If the event detail is malformed.
    """
    if envelope.detail_type != EventType.BUDGET_THRESHOLD_REACHED.value:
        logger.info(
            "Skipping unsupported event",
            detail_type=envelope.detail_type,
            record_id=envelope.record_id,
        )
        return {"dispatched": False, "skipped": True}

    detail = envelope.detail
    if not detail.get("userId") or not detail.get("budgetId"):
        raise NonRetryableError(
            "Missing required fields: userId or budgetId",
            error_kind=ErrorKind.VALIDATION,
        )

    threshold_event = ThresholdEvent.from_detail(detail)
    record = get_dispatcher().dispatch(threshold_event)

    if record is None:
        return {"dispatched": False, "skipped": False}

    return {
        "dispatched": True,
        "notificationId": record.notification_id,
        "status": record.status,
        "channel": record.channel,
    }
