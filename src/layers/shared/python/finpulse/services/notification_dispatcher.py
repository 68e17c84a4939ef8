"""Budget alert rendering and delivery."""

from typing import Any, Callable

import structlog

from finpulse.models.events import EventType, NotificationSent, build_event
from finpulse.models.notification import (
    NotificationRecord,
    NotificationStatus,
    ThresholdEvent,
    ThresholdType,
)
from finpulse.models.user import NotificationPreferences
from finpulse.repositories.user import UserRepository
from finpulse.services.event_bus import EventBus
from finpulse.services.notification_channels import (
    NotificationChannel,
    NotificationMessage,
    Recipient,
    get_channel,
)

logger = structlog.get_logger()


def _display_category(category: str) -> str:
    return category[:1].upper() + category[1:]


def render_message(event: ThresholdEvent) -> NotificationMessage:
    """Render the alert text for a threshold event.

    Exceeded alerts are urgent and omit the remaining amount; warnings
    include it when it is not negative.

    Args:
        event: The threshold event.

    Returns:
        NotificationMessage with title, text and urgency.
    """
    category = _display_category(event.category)
    summary = (
        f"Spent ${event.current_spending:.2f} of ${event.limit:.2f} "
        f"({event.percentage_used:.1f}%)."
    )

    if event.threshold_type == ThresholdType.EXCEEDED.value:
        return NotificationMessage(
            title=f"Budget Exceeded - {category}",
            text=(
                f"You've exceeded your {category} budget! {summary} "
                "Consider reviewing your spending."
            ),
            urgency="high",
        )

    text = f"You're approaching your {category} budget limit. {summary}"
    remaining = event.limit - event.current_spending
    if remaining >= 0:
        text += f" ${remaining:.2f} remaining."

    return NotificationMessage(
        title=f"Budget Alert - {category}",
        text=text,
        urgency="medium",
    )


class NotificationDispatcher:
    """Delivers threshold alerts and records them.

    History writes and the Notification Sent event are best-effort: their
    failures are logged and never fail the dispatch.
    """

    def __init__(
        self,
        users: UserRepository | None = None,
        event_bus: EventBus | None = None,
        channel_factory: Callable[..., NotificationChannel] = get_channel,
    ):
        """Initialize the dispatcher.

        Args:
            users: Users table repository (profiles and history).
            event_bus: Publisher for Notification Sent events.
            channel_factory: Builds a channel from (name, preferences).
        """
        self.users = users or UserRepository()
        self.event_bus = event_bus or EventBus()
        self.channel_factory = channel_factory
        self.logger = logger.bind(service="notification_dispatcher")

    def resolve_preferences(self, user_id: str) -> NotificationPreferences:
        """Get a user's notification preferences.

        Falls back to the defaults (alerts on, console) when the profile is
        missing or cannot be read.
        """
        try:
            user = self.users.get_user(user_id)
        except Exception as e:
            self.logger.warning("Failed to load user profile", user_id=user_id, error=str(e))
            return NotificationPreferences()

        if user is None:
            self.logger.info("User profile not found, using default preferences", user_id=user_id)
            return NotificationPreferences()

        preferences = user.notification_preferences
        if not preferences.email and user.email:
            preferences = preferences.model_copy(update={"email": user.email})
        return preferences

    def dispatch(
        self,
        event: ThresholdEvent,
        preferences: NotificationPreferences | None = None,
    ) -> NotificationRecord | None:
        """Deliver an alert for a threshold event.

        Args:
            event: The threshold event.
            preferences: The user's preferences; resolved from the Users table when omitted.

        Returns:
            The history record, or None if the user disabled budget alerts.
        """
        if preferences is None:
            preferences = self.resolve_preferences(event.user_id)

        if not preferences.budget_alerts:
            self.logger.info("User has disabled budget alerts", user_id=event.user_id)
            return None

        message = render_message(event)
        channel = self.channel_factory(preferences.preferred_channel, preferences)
        recipient = Recipient(
            user_id=event.user_id,
            budget_id=event.budget_id,
            threshold_type=event.threshold_type,
            email=preferences.email,
            phone=preferences.phone,
        )

        status = NotificationStatus.SENT
        try:
            result = channel.send(recipient, message)
            if not result.delivered:
                self.logger.warning(
                    "Notification not delivered",
                    user_id=event.user_id,
                    channel=channel.name,
                )
                status = NotificationStatus.FAILED
        except Exception as e:
            self.logger.warning(
                "Notification delivery failed",
                user_id=event.user_id,
                channel=channel.name,
                error=str(e),
            )
            status = NotificationStatus.FAILED

        record = NotificationRecord(
            user_id=event.user_id,
            budget_id=event.budget_id,
            category=event.category,
            threshold_type=event.threshold_type,
            current_spending=event.current_spending,
            limit=event.limit,
            percentage_used=event.percentage_used,
            message=message.text,
            channel=channel.name,
            status=status,
        )

        self._store_history(record)
        self._emit_sent(record)

        self.logger.info(
            "Notification dispatched",
            user_id=record.user_id,
            budget_id=record.budget_id,
            notification_id=record.notification_id,
            status=record.status,
        )
        return record

    def _store_history(self, record: NotificationRecord) -> None:
        try:
            self.users.append_notification(record)
        except Exception as e:
            self.logger.warning(
                "Failed to store notification history",
                user_id=record.user_id,
                notification_id=record.notification_id,
                error=str(e),
            )

    def _emit_sent(self, record: NotificationRecord) -> None:
        detail: dict[str, Any] = NotificationSent(
            user_id=record.user_id,
            budget_id=record.budget_id,
            category=record.category,
            notification_type=record.type,
            threshold_type=record.threshold_type,
            channel=record.channel,
            notification_id=record.notification_id,
        ).model_dump(mode="json", by_alias=True)
        self.event_bus.publish_best_effort(
            build_event(EventType.NOTIFICATION_SENT, detail)
        )
