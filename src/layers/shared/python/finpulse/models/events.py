"""Event envelope and detail schemas for the platform event bus.

Records reach the workers in three shapes:

- EventBridge delivery: {"source", "detail-type", "detail", "id", "time"}
- PutEvents entry: {"Source", "DetailType", "Detail" (JSON string), "EventBusName"}
- SQS-wrapped: {"messageId", "body"} with one of the above as JSON body

EventEnvelope.from_record normalizes all of them once, at ingress.
"""

import json
import os
from enum import Enum
from typing import Any

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from finpulse.models.base import generate_ulid, utc_now
from finpulse.models.transaction import TransactionType
from finpulse.utils.exceptions import ValidationError

DEFAULT_EVENT_SOURCE = "financial.platform"
DEFAULT_EVENT_BUS = "financial-platform-events"


class EventType(str, Enum):
    """Event detail types on the platform bus."""

    TRANSACTION_CREATED = "Transaction Created"
    TRANSACTION_UPDATED = "Transaction Updated"
    TRANSACTION_DELETED = "Transaction Deleted"
    BUDGET_THRESHOLD_REACHED = "Budget Threshold Reached"
    NOTIFICATION_SENT = "Notification Sent"
    USER_CREATED = "User Created"
    USER_UPDATED = "User Updated"
    BUDGET_CREATED = "Budget Created"
    BUDGET_UPDATED = "Budget Updated"
    BUDGET_DELETED = "Budget Deleted"


TRANSACTION_EVENT_TYPES = frozenset({
    EventType.TRANSACTION_CREATED.value,
    EventType.TRANSACTION_UPDATED.value,
    EventType.TRANSACTION_DELETED.value,
})


class EventEnvelope(PydanticBaseModel):
    """A single platform event, independent of how it was delivered."""

    source: str = Field(default_factory=lambda: os.environ.get("EVENT_SOURCE", DEFAULT_EVENT_SOURCE))
    detail_type: str
    detail: dict[str, Any] = Field(default_factory=dict)
    bus_name: str = Field(default_factory=lambda: os.environ.get("EVENT_BUS_NAME", DEFAULT_EVENT_BUS))
    id: str | None = None
    time: str | None = None

    @property
    def record_id(self) -> str:
        """Identifier used for logs and batch item failures."""
        return self.id or "unknown"

    @property
    def user_id(self) -> str | None:
        """User the event concerns, if present."""
        user_id = self.detail.get("userId")
        return user_id if isinstance(user_id, str) and user_id else None

    @property
    def is_transaction_event(self) -> bool:
        return self.detail_type in TRANSACTION_EVENT_TYPES

    @classmethod
    def from_record(cls, record: Any) -> "EventEnvelope":
        """Normalize an inbound record into an envelope.

        Args:
            record: Lambda event record in any supported shape.

        Returns:
            EventEnvelope.

        Raises:
            ValidationError: If the record is not a recognizable event.
        """
        if not isinstance(record, dict):
            raise ValidationError("Event record must be an object")

        if "body" in record and "messageId" in record:
            body = _parse_json(record.get("body"), "body")
            envelope = cls.from_record(body)
            envelope.id = record.get("messageId") or envelope.id
            return envelope

        if "detail-type" in record:
            detail_type = record.get("detail-type")
            source = record.get("source")
            detail = record.get("detail")
            bus_name = record.get("event-bus-name") or record.get("EventBusName")
        elif "DetailType" in record:
            detail_type = record.get("DetailType")
            source = record.get("Source")
            detail = record.get("Detail")
            bus_name = record.get("EventBusName")
        else:
            raise ValidationError("Unrecognized event record: missing detail type")

        if not detail_type or not isinstance(detail_type, str):
            raise ValidationError("Missing required field: detail type")

        fields: dict[str, Any] = {
            "detail_type": detail_type,
            "detail": _parse_json(detail, "detail") if detail is not None else {},
            "id": record.get("id") or record.get("messageId"),
            "time": record.get("time"),
        }
        if source:
            fields["source"] = source
        if bus_name:
            fields["bus_name"] = bus_name

        return cls(**fields)

    def to_put_events_entry(self) -> dict[str, Any]:
        """Build an EventBridge PutEvents entry."""
        return {
            "Source": self.source,
            "DetailType": self.detail_type,
            "Detail": json.dumps(self.detail, default=str),
            "EventBusName": self.bus_name,
        }


def _parse_json(value: Any, field_name: str) -> dict[str, Any]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in event {field_name}") from e
    if not isinstance(value, dict):
        raise ValidationError(f"Event {field_name} must be an object")
    return value


class EventDetail(PydanticBaseModel):
    """Base for event details. Field names are camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="allow",
    )

    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())


class TransactionCreated(EventDetail):
    user_id: str = Field(..., min_length=1)
    transaction_id: str = Field(..., min_length=1)
    amount: float
    category: str = Field(..., min_length=1)
    type: TransactionType
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class TransactionUpdated(EventDetail):
    user_id: str = Field(..., min_length=1)
    transaction_id: str = Field(..., min_length=1)
    before_state: dict[str, Any]
    after_state: dict[str, Any]
    changes: list[str] = Field(default_factory=list)
    updated_by: str


class TransactionDeleted(EventDetail):
    user_id: str = Field(..., min_length=1)
    transaction_id: str = Field(..., min_length=1)
    deleted_transaction: dict[str, Any]
    deleted_by: str


class BudgetThresholdReached(EventDetail):
    user_id: str = Field(..., min_length=1)
    budget_id: str = Field(..., min_length=1)
    category: str
    current_spending: float
    limit: float
    percentage_used: float
    threshold_type: str


class NotificationSent(EventDetail):
    user_id: str = Field(..., min_length=1)
    budget_id: str | None = None
    category: str | None = None
    notification_type: str
    threshold_type: str | None = None
    channel: str
    notification_id: str = Field(default_factory=lambda: f"notif-{generate_ulid()}")


DETAIL_SCHEMAS: dict[str, type[EventDetail]] = {
    EventType.TRANSACTION_CREATED.value: TransactionCreated,
    EventType.TRANSACTION_UPDATED.value: TransactionUpdated,
    EventType.TRANSACTION_DELETED.value: TransactionDeleted,
    EventType.BUDGET_THRESHOLD_REACHED.value: BudgetThresholdReached,
    EventType.NOTIFICATION_SENT.value: NotificationSent,
}


def validate_detail(detail_type: str, detail: dict[str, Any]) -> EventDetail:
    """Validate an event detail against its schema.

    Args:
        detail_type: Event detail type.
        detail: Detail payload.

    Returns:
        The parsed detail model.

    Raises:
        ValidationError: If the detail type has no schema or the payload is invalid.
    """
    schema = DETAIL_SCHEMAS.get(detail_type)
    if schema is None:
        raise ValidationError(f"No schema registered for event type '{detail_type}'")

    try:
        return schema.model_validate(detail)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def build_event(detail_type: EventType | str, detail: EventDetail | dict[str, Any]) -> EventEnvelope:
    """Build an envelope for publishing, validating the detail first.

    Args:
        detail_type: Event detail type.
        detail: Detail model or camelCase dict.

    Returns:
        EventEnvelope with source and bus from the environment.
    """
    detail_type = detail_type.value if isinstance(detail_type, EventType) else detail_type

    if isinstance(detail, EventDetail):
        payload = detail.model_dump(mode="json", by_alias=True)
    else:
        payload = validate_detail(detail_type, detail).model_dump(mode="json", by_alias=True)

    return EventEnvelope(detail_type=detail_type, detail=payload)
