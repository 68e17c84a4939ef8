"""Platform event bus publisher (EventBridge)."""

from typing import Any

import boto3
import structlog

from finpulse.execution.circuit_breaker import CircuitBreaker
from finpulse.models.events import EventEnvelope
from finpulse.utils.exceptions import CircuitOpenError, RetryableError

logger = structlog.get_logger()


class EventBus:
    """Publishes envelopes to EventBridge.

    Delivery is at-least-once with no ordering guarantee across detail types.
    """

    def __init__(self, client: Any = None, circuit: CircuitBreaker | None = None):
        """Initialize the publisher.

        Args:
            client: Optional boto3 EventBridge client.
            circuit: Optional breaker guarding put_events.
        """
        self._client = client
        self.circuit = circuit
        self.logger = logger.bind(service="event_bus")

    @property
    def client(self):
        """Get EventBridge client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("events")
        return self._client

    def publish(self, envelope: EventEnvelope) -> str | None:
        """Publish one event.

        Args:
            envelope: Event to publish.

        Returns:
            The EventBridge event ID.

        Raises:
            RetryableError: If EventBridge rejected the entry.
            CircuitOpenError: If the bus circuit is open.
        """
        if self.circuit is None:
            return self._put(envelope)
        return self.circuit.call_sync(lambda: self._put(envelope))

    def _put(self, envelope: EventEnvelope) -> str | None:
        response = self.client.put_events(Entries=[envelope.to_put_events_entry()])

        failed_count = response.get("FailedEntryCount", 0)
        entries = response.get("Entries", [])
        if failed_count > 0:
            failure = entries[0] if entries else {}
            self.logger.warning(
                "Event failed to publish",
                detail_type=envelope.detail_type,
                error_code=failure.get("ErrorCode"),
                error_message=failure.get("ErrorMessage"),
            )
            raise RetryableError(
                f"EventBridge rejected '{envelope.detail_type}': "
                f"{failure.get('ErrorCode', 'unknown error')}"
            )

        event_id = entries[0].get("EventId") if entries else None
        self.logger.info(
            "Published event",
            detail_type=envelope.detail_type,
            bus_name=envelope.bus_name,
            event_id=event_id,
        )
        return event_id

    def publish_best_effort(self, envelope: EventEnvelope) -> bool:
        """Publish once, logging instead of raising on failure.

        Returns:
            True if the event was accepted.
        """
        try:
            self.publish(envelope)
            return True
        except CircuitOpenError:
            self.logger.warning(
                "Event bus circuit open, skipping publish",
                detail_type=envelope.detail_type,
                user_id=envelope.user_id,
            )
            return False
        except Exception as e:
            self.logger.warning(
                "Failed to publish event",
                detail_type=envelope.detail_type,
                user_id=envelope.user_id,
                error=str(e),
            )
            return False
