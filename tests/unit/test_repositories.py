"""Tests for the DynamoDB repositories."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from boto3.dynamodb.conditions import Key

from finpulse.models.budget import Budget
from finpulse.models.notification import NotificationRecord
from finpulse.models.user import User
from finpulse.utils.exceptions import ConflictError, NotFoundError, ValidationError


class TestBaseRepository:
    """Tests for conditional writes and queries on the base repository."""

    def test_create_fails_if_exists(self, budget_repo, sample_budget):
        budget_repo.create(sample_budget)

        with pytest.raises(ConflictError):
            budget_repo.create(sample_budget)

    def test_get_missing_returns_none(self, budget_repo):
        assert budget_repo.get_by_id("user-123", "nope") is None

    def test_update_requires_existing_item(self, budget_repo):
        with pytest.raises(ConflictError):
            budget_repo.update({"userId": "user-123", "budgetId": "nope"}, {"currentSpending": 1.5})

    def test_update_sets_attributes(self, budget_repo, sample_budget):
        budget_repo.create(sample_budget)

        updated = budget_repo.update(sample_budget.get_key(), {"currentSpending": 12.5, "name": "Food"})

        assert updated == {"currentSpending": 12.5, "name": "Food"}
        assert budget_repo.get_by_id("user-123", "budget-food").name == "Food"

    def test_delete(self, budget_repo, sample_budget):
        budget_repo.create(sample_budget)

        assert budget_repo.delete(sample_budget.get_key()) is True
        assert budget_repo.delete(sample_budget.get_key()) is False

    def test_get_invalid_stored_item_raises_validation_error(self, budget_repo):
        budget_repo.table.put_item(
            Item={"userId": "user-123", "budgetId": "broken", "amount": Decimal("0")}
        )

        with pytest.raises(ValidationError) as exc_info:
            budget_repo.get_by_id("user-123", "broken")

        assert exc_info.value.errors[0]["field"] == "amount"

    def test_query_raises_on_invalid_stored_item(self, budget_repo):
        budget_repo.table.put_item(
            Item={"userId": "user-123", "budgetId": "broken", "amount": Decimal("-5")}
        )

        with pytest.raises(ValidationError):
            budget_repo.query(key_condition=Key("userId").eq("user-123"))


class TestBudgetRepository:
    """Tests for BudgetRepository."""

    def test_list_for_user(self, budget_repo):
        for budget_id in ("b-1", "b-2"):
            budget_repo.create(Budget(user_id="user-1", budget_id=budget_id, amount=100))
        budget_repo.create(Budget(user_id="user-2", budget_id="b-3", amount=100))

        budgets = budget_repo.list_for_user("user-1")

        assert sorted(b.budget_id for b in budgets) == ["b-1", "b-2"]

    def test_list_for_user_skips_invalid_stored_items(self, budget_repo, sample_budget):
        budget_repo.create(sample_budget)
        budget_repo.table.put_item(
            Item={"userId": "user-123", "budgetId": "broken", "amount": Decimal("0")}
        )

        budgets = budget_repo.list_for_user("user-123")

        assert [b.budget_id for b in budgets] == ["budget-food"]

    def test_update_metrics(self, budget_repo, sample_budget):
        budget_repo.create(sample_budget)
        calculated_at = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        sample_budget.record_spending(170.0, calculated_at=calculated_at)

        budget_repo.update_metrics(sample_budget)

        stored = budget_repo.get_by_id("user-123", "budget-food")
        assert stored.current_spending == 170.0
        assert stored.percentage_used == 85.0
        assert stored.last_calculated == calculated_at

    def test_update_metrics_missing_budget_raises_not_found(self, budget_repo, sample_budget):
        sample_budget.record_spending(50.0)

        with pytest.raises(NotFoundError) as exc_info:
            budget_repo.update_metrics(sample_budget)

        assert exc_info.value.status_code == 404
        assert exc_info.value.resource_id == "budget-food"
        assert budget_repo.get_by_id("user-123", "budget-food") is None


class TestTransactionRepository:
    """Tests for TransactionRepository."""

    def test_sum_expenses_ignores_income_and_other_categories(self, transaction_repo, add_expense):
        add_expense("user-123", "food", 40.25)
        add_expense("user-123", "Food", 59.75)
        add_expense("user-123", "food", 500, type="income")
        add_expense("user-123", "travel", 80)
        add_expense("user-456", "food", 15)

        assert transaction_repo.sum_expenses("user-123", "FOOD") == 100.0

    def test_list_expenses_by_category(self, transaction_repo, add_expense):
        add_expense("user-123", "food", 10)
        add_expense("user-123", "food", 20)

        transactions = transaction_repo.list_expenses_by_category("user-123", "food")

        assert sorted(t.amount for t in transactions) == [10, 20]
        assert all(t.type == "expense" for t in transactions)

    def test_sum_with_no_transactions(self, transaction_repo):
        assert transaction_repo.sum_expenses("user-123", "food") == 0.0


class TestUserRepository:
    """Tests for UserRepository."""

    def _record(self, user_id="user-123", threshold_type="warning"):
        return NotificationRecord(
            user_id=user_id,
            budget_id="budget-food",
            category="food",
            threshold_type=threshold_type,
            current_spending=170.0,
            limit=200.0,
            percentage_used=85.0,
            message="You're approaching your Food budget limit.",
        )

    def test_get_user(self, user_repo):
        user_repo.put(User(user_id="user-123", email="u@example.com"))

        user = user_repo.get_user("user-123")

        assert user.email == "u@example.com"
        assert user.notification_preferences.budget_alerts is True

    def test_append_notification_creates_history(self, user_repo):
        user_repo.put(User(user_id="user-123"))

        user_repo.append_notification(self._record())
        user_repo.append_notification(self._record(threshold_type="exceeded"))

        history = user_repo.list_notifications("user-123")
        assert [r.threshold_type for r in history] == ["warning", "exceeded"]
        assert history[0].percentage_used == 85.0

    def test_append_notification_without_profile(self, user_repo):
        user_repo.append_notification(self._record(user_id="user-new"))

        assert len(user_repo.list_notifications("user-new")) == 1

    def test_list_notifications_missing_user(self, user_repo):
        assert user_repo.list_notifications("nobody") == []

    def test_list_notifications_invalid_history_raises_validation_error(self, user_repo):
        user_repo.table.put_item(
            Item={"userId": "user-123", "notificationHistory": [{"userId": "user-123"}]}
        )

        with pytest.raises(ValidationError):
            user_repo.list_notifications("user-123")
