"""User repository."""

import os
from typing import Any

import structlog
from botocore.exceptions import ClientError
from pydantic import ValidationError as PydanticValidationError

from finpulse.models.notification import NotificationRecord
from finpulse.models.user import User
from finpulse.repositories.base import BaseRepository
from finpulse.utils.exceptions import ValidationError

logger = structlog.get_logger()


class UserRepository(BaseRepository[User]):
    """Repository for the Users table."""

    def __init__(self, table_name: str | None = None, dynamodb: Any = None):
        """Initialize user repository.

        Args:
            table_name: Defaults to USERS_TABLE env var.
            dynamodb: Optional boto3 DynamoDB resource.
        """
        super().__init__(
            User,
            table_name or os.environ.get("USERS_TABLE", "Users"),
            dynamodb=dynamodb,
        )

    def get_user(self, user_id: str) -> User | None:
        """Get a user profile by ID."""
        return self.get({"userId": user_id})

    def append_notification(self, record: NotificationRecord) -> None:
        """Append a notification to the user's notificationHistory list.

        Args:
            record: Notification history entry.
        """
        try:
            self.table.update_item(
                Key={"userId": record.user_id},
                UpdateExpression=(
                    "SET #notifications = list_append("
                    "if_not_exists(#notifications, :empty_list), :notification)"
                ),
                ExpressionAttributeNames={"#notifications": "notificationHistory"},
                ExpressionAttributeValues={
                    ":notification": [record.to_dynamodb()],
                    ":empty_list": [],
                },
            )
        except ClientError as e:
            logger.error(
                "DynamoDB append notification failed",
                error=str(e),
                user_id=record.user_id,
            )
            raise

    def list_notifications(self, user_id: str) -> list[NotificationRecord]:
        """Get the notification history of a user, oldest first."""
        try:
            response = self.table.get_item(
                Key={"userId": user_id},
                ProjectionExpression="notificationHistory",
            )
        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), user_id=user_id)
            raise

        history = response.get("Item", {}).get("notificationHistory", [])
        try:
            return [NotificationRecord.from_dynamodb(item) for item in history]
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e
