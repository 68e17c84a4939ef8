"""Domain services for budget tracking and alerts."""

from finpulse.services.budget_threshold import (
    BudgetThresholdEngine,
    SpendTarget,
    ThresholdOutcome,
    budget_matches_category,
    classify_threshold,
    spend_targets,
)
from finpulse.services.event_bus import EventBus
from finpulse.services.notification_channels import (
    ConsoleChannel,
    DeliveryResult,
    EmailChannel,
    NotificationChannel,
    NotificationMessage,
    Recipient,
    get_channel,
)
from finpulse.services.notification_dispatcher import (
    NotificationDispatcher,
    render_message,
)

__all__ = [
    "BudgetThresholdEngine",
    "SpendTarget",
    "ThresholdOutcome",
    "budget_matches_category",
    "classify_threshold",
    "spend_targets",
    "EventBus",
    "ConsoleChannel",
    "DeliveryResult",
    "EmailChannel",
    "NotificationChannel",
    "NotificationMessage",
    "Recipient",
    "get_channel",
    "NotificationDispatcher",
    "render_message",
]
