"""Budget repository."""

import os
from typing import Any

from boto3.dynamodb.conditions import Key

from finpulse.models.budget import Budget
from finpulse.repositories.base import BaseRepository
from finpulse.utils.exceptions import ConflictError, NotFoundError


class BudgetRepository(BaseRepository[Budget]):
    """Repository for the Budgets table."""

    def __init__(self, table_name: str | None = None, dynamodb: Any = None):
        """Initialize budget repository.

        Args:
            table_name: Defaults to BUDGETS_TABLE env var.
            dynamodb: Optional boto3 DynamoDB resource.
        """
        super().__init__(
            Budget,
            table_name or os.environ.get("BUDGETS_TABLE", "Budgets"),
            dynamodb=dynamodb,
        )

    def get_by_id(self, user_id: str, budget_id: str) -> Budget | None:
        """Get a budget by ID."""
        return self.get({"userId": user_id, "budgetId": budget_id})

    def list_for_user(self, user_id: str) -> list[Budget]:
        """List all budgets for a user, skipping stored items that fail validation."""
        return self.query(key_condition=Key("userId").eq(user_id), skip_invalid=True)

    def update_metrics(self, budget: Budget) -> dict[str, Any]:
        """Persist the recalculated spend fields of a budget.

        Raises:
            NotFoundError: If the budget was deleted meanwhile.
        """
        try:
            return self.update(
                budget.get_key(),
                {
                    "currentSpending": budget.current_spending,
                    "percentageUsed": budget.percentage_used,
                    "lastCalculated": budget.last_calculated,
                },
            )
        except ConflictError as e:
            raise NotFoundError("Budget", budget.budget_id) from e
