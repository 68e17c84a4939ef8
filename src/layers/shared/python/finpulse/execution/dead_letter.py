"""Dead-letter sinks for records that failed permanently.

The default sink is a structured error log carrying everything needed to
inspect or replay the record. When DEAD_LETTER_QUEUE_URL is set the record
is also forwarded to SQS.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Any

import boto3
import structlog

from finpulse.execution.error_classifier import classify_error
from finpulse.models.base import utc_now

logger = structlog.get_logger()


class DeadLetterSink(ABC):
    """Destination for records whose processing failed permanently."""

    @abstractmethod
    def send(
        self,
        record: Any,
        error: Exception,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Hand off one failed record."""


def build_dead_letter_entry(
    record: Any,
    error: Exception,
    context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Collect the context logged/forwarded for a dead-lettered record.

    Args:
        record: Raw inbound record.
        error: Terminal failure.
        context: Extra context (function name, record id, event type, user id).

    Returns:
        Dict describing the failure.
    """
    context = context or {}
    error_kind = getattr(error, "error_kind", None) or classify_error(error)

    try:
        full_record = json.dumps(record, default=str)
    except (TypeError, ValueError):
        full_record = repr(record)

    return {
        "record_id": context.get("record_id", "unknown"),
        "event_type": context.get("event_type"),
        "user_id": context.get("user_id") or "unknown",
        "error": str(error),
        "error_kind": getattr(error_kind, "value", str(error_kind)),
        "function_name": context.get("function_name") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME"),
        "timestamp": utc_now().isoformat(),
        "full_record": full_record,
    }


class LoggingDeadLetterSink(DeadLetterSink):
    """Logs dead-lettered records at error level."""

    def send(
        self,
        record: Any,
        error: Exception,
        context: dict[str, Any] | None = None,
    ) -> None:
        logger.error(
            "DEAD_LETTER_QUEUE: Message processing failed permanently",
            **build_dead_letter_entry(record, error, context),
        )


class SqsDeadLetterSink(LoggingDeadLetterSink):
    """Logs and forwards dead-lettered records to an SQS queue.

    send_message is a blocking boto3 call. Under concurrent batch processing
    it holds the event loop, so sibling records wait until it returns.
    """

    def __init__(self, queue_url: str, client: Any = None):
        """Initialize the sink.

        Args:
            queue_url: Target SQS queue URL.
            client: Optional boto3 SQS client.
        """
        self.queue_url = queue_url
        self._client = client

    @property
    def client(self):
        """Get SQS client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("sqs")
        return self._client

    def send(
        self,
        record: Any,
        error: Exception,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().send(record, error, context)

        entry = build_dead_letter_entry(record, error, context)
        try:
            self.client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(entry, default=str),
                MessageAttributes={
                    "error_kind": {"DataType": "String", "StringValue": entry["error_kind"]},
                    "record_id": {"DataType": "String", "StringValue": str(entry["record_id"])},
                },
            )
        except Exception as e:
            logger.warning(
                "Failed to forward record to dead-letter queue",
                queue_url=self.queue_url,
                record_id=entry["record_id"],
                error=str(e),
            )


def get_dead_letter_sink() -> DeadLetterSink:
    """Build the sink configured by DEAD_LETTER_QUEUE_URL."""
    queue_url = os.environ.get("DEAD_LETTER_QUEUE_URL")
    if queue_url:
        return SqsDeadLetterSink(queue_url)
    return LoggingDeadLetterSink()
