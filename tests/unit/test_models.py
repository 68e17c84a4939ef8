"""Tests for domain models."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from finpulse.models.budget import Budget
from finpulse.models.notification import NotificationRecord, ThresholdEvent, ThresholdType
from finpulse.models.transaction import Transaction, TransactionType
from finpulse.models.user import NotificationPreferences, User
from finpulse.utils.exceptions import ValidationError


class TestTransaction:
    """Tests for the Transaction model."""

    def test_amount_stored_positive(self):
        transaction = Transaction(user_id="u", amount=-25.5, category="Food", type="expense")

        assert transaction.amount == 25.5
        assert transaction.category == "food"
        assert transaction.type == TransactionType.EXPENSE.value

    def test_to_dynamodb(self):
        transaction = Transaction(
            user_id="u",
            timestamp="2024-06-01T12:00:00+00:00",
            amount=12.34,
            category="food",
            type="expense",
        )

        item = transaction.to_dynamodb()

        assert item["userId"] == "u"
        assert item["amount"] == Decimal("12.34")
        assert transaction.get_key() == {"userId": "u", "timestamp": "2024-06-01T12:00:00+00:00"}

    def test_rejects_unknown_type(self):
        with pytest.raises(PydanticValidationError):
            Transaction(user_id="u", amount=1, category="food", type="refund")


class TestBudget:
    """Tests for the Budget model."""

    def test_record_spending(self):
        budget = Budget(user_id="u", budget_id="b", amount=200, category="Food")
        calculated_at = datetime(2024, 6, 1, tzinfo=timezone.utc)

        budget.record_spending(170, calculated_at=calculated_at)

        assert budget.current_spending == 170.0
        assert budget.percentage_used == 85.0
        assert budget.last_calculated == calculated_at
        assert budget.category == "food"

    def test_percentage_matches_rounded_spend(self):
        budget = Budget(user_id="u", budget_id="b", amount=300)

        budget.record_spending(100.004)

        assert budget.current_spending == 100.0
        assert budget.percentage_used == round(100.0 / 300 * 100, 2)

    def test_amount_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            Budget(user_id="u", amount=0)

    def test_dynamodb_roundtrip_keeps_numbers(self):
        budget = Budget(user_id="u", budget_id="b", name="Food", amount=200, category="food")

        restored = Budget.from_dynamodb(budget.to_dynamodb())

        assert restored.amount == 200
        assert restored.budget_id == "b"
        assert restored.created_at == budget.created_at


class TestThresholdEvent:
    """Tests for ThresholdEvent."""

    def _event(self, **overrides):
        fields = {
            "user_id": "u",
            "budget_id": "b",
            "category": "food",
            "current_spending": 170.0,
            "limit": 200.0,
            "percentage_used": 85.0,
            "threshold_type": ThresholdType.WARNING,
            "timestamp": datetime(2024, 6, 1, 15, 30, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return ThresholdEvent(**fields)

    def test_idempotency_key(self):
        assert self._event().idempotency_key == "u#b#warning#2024-06-01"

    def test_to_detail(self):
        detail = self._event().to_detail()

        assert detail["userId"] == "u"
        assert detail["thresholdType"] == "warning"
        assert detail["percentageUsed"] == 85.0
        assert detail["idempotencyKey"] == "u#b#warning#2024-06-01"

    def test_from_detail(self):
        event = ThresholdEvent.from_detail(self._event().to_detail())

        assert event.budget_id == "b"
        assert event.threshold_type == "warning"
        assert event.timestamp == datetime(2024, 6, 1, 15, 30, tzinfo=timezone.utc)

    def test_from_detail_rejects_missing_budget(self):
        detail = self._event().to_detail()
        del detail["budgetId"]

        with pytest.raises(ValidationError):
            ThresholdEvent.from_detail(detail)


class TestUserAndNotification:
    """Tests for User and NotificationRecord."""

    def test_default_preferences(self):
        user = User(user_id="u")

        assert user.notification_preferences.budget_alerts is True
        assert user.notification_preferences.preferred_channel == "console"

    def test_preferences_from_camel_case(self):
        user = User.from_dynamodb({
            "userId": "u",
            "email": "u@example.com",
            "notificationPreferences": {"budgetAlerts": False, "preferredChannel": "email"},
        })

        assert user.notification_preferences == NotificationPreferences(
            budget_alerts=False,
            preferred_channel="email",
        )

    def test_notification_record_defaults(self):
        record = NotificationRecord(
            user_id="u",
            budget_id="b",
            category="food",
            threshold_type="exceeded",
            current_spending=200,
            limit=200,
            percentage_used=100,
            message="You've exceeded your Food budget!",
        )

        assert record.notification_id.startswith("notif-")
        assert record.channel == "console"
        assert record.status == "sent"
        assert record.type == "budget_threshold"
