"""Transaction model."""

from enum import Enum
from typing import ClassVar

from pydantic import Field, field_validator

from finpulse.models.base import BaseModel, generate_ulid, utc_now


class TransactionType(str, Enum):
    """Transaction direction."""

    INCOME = "income"
    EXPENSE = "expense"


def normalize_category(value: str | None) -> str | None:
    """Normalize a category for matching and index lookups."""
    if value is None:
        return None
    return value.strip().lower()


class Transaction(BaseModel):
    """Transaction entity - an income or expense recorded by a user.

    Key Pattern (Transactions table):
        userId: {user_id}
        timestamp: {ISO creation time}
    GSI category-index:
        userId / category
    """

    _key_attributes: ClassVar[tuple[str, ...]] = ("userId", "timestamp")

    user_id: str = Field(..., min_length=1, description="Owning user ID")
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat(), description="Creation time, sort key")
    transaction_id: str = Field(default_factory=generate_ulid, description="Unique transaction ID")
    amount: float = Field(..., description="Amount, stored positive; direction comes from type")
    category: str = Field(..., min_length=1, description="Spending category")
    type: TransactionType = Field(..., description="income or expense")
    description: str = Field(default="", description="Free-text description")

    @field_validator("amount")
    @classmethod
    def store_positive(cls, v: float) -> float:
        """Amounts are always stored positive."""
        return abs(v)

    @field_validator("category")
    @classmethod
    def normalize(cls, v: str) -> str:
        """Normalize category to lowercase for consistent lookups."""
        return normalize_category(v)
