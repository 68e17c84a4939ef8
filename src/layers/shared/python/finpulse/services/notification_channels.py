"""Notification delivery channels.

Console delivery is the default. Email goes through SES when a sender
address is configured; sms and push fall back to console until they have
a provider.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import boto3
import structlog

from finpulse.execution.circuit_breaker import CircuitBreaker
from finpulse.models.user import NotificationPreferences

logger = structlog.get_logger()


@dataclass
class NotificationMessage:
    """A rendered alert."""

    title: str
    text: str
    urgency: str


@dataclass
class Recipient:
    """Who a notification is delivered to."""

    user_id: str
    budget_id: str | None = None
    threshold_type: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class DeliveryResult:
    """Outcome of a channel send."""

    channel: str
    delivered: bool
    message_id: str | None = None


class NotificationChannel(ABC):
    """Interface for notification delivery."""

    name = "base"

    @abstractmethod
    def send(self, recipient: Recipient, message: NotificationMessage) -> DeliveryResult:
        """Deliver one message to a recipient."""


class ConsoleChannel(NotificationChannel):
    """Writes the notification to the log stream."""

    name = "console"

    def send(self, recipient: Recipient, message: NotificationMessage) -> DeliveryResult:
        logger.info(
            "=== BUDGET NOTIFICATION ===",
            user_id=recipient.user_id,
            budget_id=recipient.budget_id,
            type=(recipient.threshold_type or "").upper(),
            title=message.title,
            message=message.text,
            urgency=message.urgency,
        )
        return DeliveryResult(channel=self.name, delivered=True)


class EmailChannel(NotificationChannel):
    """Sends the notification through Amazon SES."""

    name = "email"

    def __init__(self, from_email: str, client: Any = None, circuit: CircuitBreaker | None = None):
        """Initialize the email channel.

        Args:
            from_email: Verified SES sender address.
            client: Optional boto3 SES client.
            circuit: Optional breaker guarding SES calls.
        """
        self.from_email = from_email
        self._client = client
        self.circuit = circuit

    @property
    def client(self):
        """Get SES client (lazy initialization)."""
        if self._client is None:
            self._client = boto3.client("ses")
        return self._client

    def send(self, recipient: Recipient, message: NotificationMessage) -> DeliveryResult:
        """Send an email.

        Raises:
            ValueError: If the recipient has no email address.
            botocore.exceptions.ClientError: If SES rejects the message.
            CircuitOpenError: If the external API circuit is open.
        """
        if not recipient.email:
            raise ValueError(f"User {recipient.user_id} has no email address")

        def send_email():
            return self.client.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [recipient.email]},
                Message={
                    "Subject": {"Data": message.title, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": message.text, "Charset": "UTF-8"}},
                },
            )

        response = send_email() if self.circuit is None else self.circuit.call_sync(send_email)

        message_id = response.get("MessageId")
        logger.info(
            "Notification email sent",
            user_id=recipient.user_id,
            message_id=message_id,
        )
        return DeliveryResult(channel=self.name, delivered=True, message_id=message_id)


def get_channel(
    name: str | None,
    preferences: NotificationPreferences | None = None,
    ses_client: Any = None,
    circuit: CircuitBreaker | None = None,
) -> NotificationChannel:
    """Pick the delivery channel for a preferred channel name.

    Args:
        name: Preferred channel (console, email, sms, push).
        preferences: User preferences, consulted for the email address.
        ses_client: Optional boto3 SES client for the email channel.
        circuit: Optional breaker guarding the email provider.

    Returns:
        The channel to use; console when the preferred one is unavailable.
    """
    if name == "email":
        from_email = os.environ.get("NOTIFICATION_FROM_EMAIL")
        if from_email and preferences is not None and preferences.email:
            return EmailChannel(from_email, client=ses_client, circuit=circuit)

    if name and name != ConsoleChannel.name:
        logger.debug("Channel unavailable, using console", channel=name)

    return ConsoleChannel()
