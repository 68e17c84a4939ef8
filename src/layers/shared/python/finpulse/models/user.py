"""User profile model (notification-relevant fields only)."""

from typing import ClassVar

from pydantic import Field

from finpulse.models.base import BaseModel


class NotificationPreferences(BaseModel):
    """How and whether a user wants budget alerts."""

    budget_alerts: bool = Field(default=True, description="Budget alerts enabled")
    email: str | None = Field(None, description="Alert email address")
    phone: str | None = Field(None, description="Alert phone number")
    preferred_channel: str = Field(default="console", description="console, email, sms or push")


class User(BaseModel):
    """User entity.

    Key Pattern (Users table):
        userId: {user_id}

    notificationHistory is appended to in place and is not loaded here.
    """

    _key_attributes: ClassVar[tuple[str, ...]] = ("userId",)

    user_id: str = Field(..., min_length=1, description="User ID (identity provider subject)")
    email: str | None = Field(None, description="Account email")
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)
