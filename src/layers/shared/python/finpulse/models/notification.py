"""Notification history and threshold decision models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from finpulse.models.base import BaseModel, generate_ulid, round2, utc_now
from finpulse.models.events import EventType, validate_detail
from finpulse.utils.exceptions import ValidationError


class ThresholdType(str, Enum):
    """Budget threshold levels."""

    WARNING = "warning"  # >= 80% of limit
    EXCEEDED = "exceeded"  # >= 100% of limit


class NotificationStatus(str, Enum):
    """Delivery status of a notification."""

    SENT = "sent"
    FAILED = "failed"


def generate_notification_id() -> str:
    """Generate a notification ID."""
    return f"notif-{generate_ulid()}"


class ThresholdEvent(BaseModel):
    """A budget crossing a threshold during one recalculation.

    Transient; published as a "Budget Threshold Reached" event.
    """

    user_id: str
    budget_id: str
    category: str
    current_spending: float
    limit: float
    percentage_used: float
    threshold_type: ThresholdType
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def idempotency_key(self) -> str:
        """One key per user, budget, threshold type and UTC day.

        Consumers wanting at-most-once alerts per day can deduplicate on it.
        """
        return (
            f"{self.user_id}#{self.budget_id}#{self.threshold_type}#"
            f"{self.timestamp.date().isoformat()}"
        )

    def to_detail(self) -> dict[str, Any]:
        """Serialize to a "Budget Threshold Reached" event detail."""
        detail = self.model_dump(mode="json", by_alias=True)
        detail["percentageUsed"] = round2(self.percentage_used)
        detail["idempotencyKey"] = self.idempotency_key
        return detail

    @classmethod
    def from_detail(cls, detail: dict[str, Any]) -> "ThresholdEvent":
        """Parse a "Budget Threshold Reached" event detail.

        Raises:
            ValidationError: If required fields are missing or malformed.
        """
        validate_detail(EventType.BUDGET_THRESHOLD_REACHED.value, detail)
        try:
            return cls.model_validate(detail)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e


class NotificationRecord(BaseModel):
    """Append-only notification history entry, stored on the user item."""

    notification_id: str = Field(default_factory=generate_notification_id)
    user_id: str
    budget_id: str
    category: str
    type: str = Field(default="budget_threshold")
    threshold_type: ThresholdType
    current_spending: float
    limit: float
    percentage_used: float
    message: str
    channel: str = Field(default="console")
    sent_at: datetime = Field(default_factory=utc_now)
    status: NotificationStatus = Field(default=NotificationStatus.SENT)
