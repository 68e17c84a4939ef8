"""Pydantic models for finpulse entities and events."""

from finpulse.models.base import BaseModel, generate_ulid, round2, utc_now
from finpulse.models.budget import Budget
from finpulse.models.events import (
    BudgetThresholdReached,
    EventEnvelope,
    EventType,
    NotificationSent,
    TransactionCreated,
    TransactionDeleted,
    TransactionUpdated,
    build_event,
    validate_detail,
)
from finpulse.models.notification import (
    NotificationRecord,
    NotificationStatus,
    ThresholdEvent,
    ThresholdType,
)
from finpulse.models.transaction import Transaction, TransactionType, normalize_category
from finpulse.models.user import NotificationPreferences, User

__all__ = [
    "BaseModel",
    "generate_ulid",
    "round2",
    "utc_now",
    "Budget",
    "BudgetThresholdReached",
    "EventEnvelope",
    "EventType",
    "NotificationSent",
    "TransactionCreated",
    "TransactionDeleted",
    "TransactionUpdated",
    "build_event",
    "validate_detail",
    "NotificationRecord",
    "NotificationStatus",
    "ThresholdEvent",
    "ThresholdType",
    "Transaction",
    "TransactionType",
    "normalize_category",
    "NotificationPreferences",
    "User",
]
