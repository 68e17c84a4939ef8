"""Transaction repository."""

import os
from typing import Any

from boto3.dynamodb.conditions import Attr, Key

from finpulse.models.base import round2
from finpulse.models.transaction import Transaction, TransactionType, normalize_category
from finpulse.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for the Transactions table."""

    def __init__(
        self,
        table_name: str | None = None,
        category_index: str | None = None,
        dynamodb: Any = None,
    ):
        """Initialize transaction repository.

        Args:
            table_name: Defaults to TRANSACTIONS_TABLE env var.
            category_index: Defaults to TRANSACTIONS_CATEGORY_INDEX env var.
            dynamodb: Optional boto3 DynamoDB resource.
        """
        super().__init__(
            Transaction,
            table_name or os.environ.get("TRANSACTIONS_TABLE", "Transactions"),
            dynamodb=dynamodb,
        )
        self.category_index = category_index or os.environ.get(
            "TRANSACTIONS_CATEGORY_INDEX", "category-index"
        )

    def list_expenses_by_category(self, user_id: str, category: str) -> list[Transaction]:
        """List every expense a user recorded in a category.

        Args:
            user_id: The user ID.
            category: Category (normalized before lookup).

        Returns:
            List of expense transactions.
        """
        return self.query(
            key_condition=Key("userId").eq(user_id) & Key("category").eq(normalize_category(category)),
            filter_expression=Attr("type").eq(TransactionType.EXPENSE.value),
            index_name=self.category_index,
        )

    def sum_expenses(self, user_id: str, category: str) -> float:
        """Total expense amount for a user and category (full rescan)."""
        transactions = self.list_expenses_by_category(user_id, category)
        return round2(sum(t.amount for t in transactions))
