"""Budget model."""

from datetime import datetime
from typing import ClassVar

from pydantic import Field, field_validator

from finpulse.models.base import BaseModel, TimestampMixin, generate_ulid, round2, utc_now
from finpulse.models.transaction import normalize_category


class Budget(BaseModel, TimestampMixin):
    """Budget entity - a spending limit for a user.

    Key Pattern (Budgets table):
        userId: {user_id}
        budgetId: {budget_id}

    current_spending, percentage_used and last_calculated are owned by the
    budget threshold engine.
    """

    _key_attributes: ClassVar[tuple[str, ...]] = ("userId", "budgetId")

    user_id: str = Field(..., min_length=1, description="Owning user ID")
    budget_id: str = Field(default_factory=generate_ulid, description="Budget ID")
    name: str = Field(default="", description="Display name")
    amount: float = Field(..., gt=0, description="Spending limit")
    category: str | None = Field(None, description="Budgeted category")
    period: str | None = Field(None, description="Budget period (monthly, weekly, ...)")

    current_spending: float = Field(default=0.0, description="Category spend at last calculation")
    percentage_used: float = Field(default=0.0, description="current_spending / amount * 100, 2dp")
    last_calculated: datetime | None = Field(None, description="Last recalculation time")

    @field_validator("category")
    @classmethod
    def normalize(cls, v: str | None) -> str | None:
        """Normalize category to lowercase."""
        return normalize_category(v)

    def percentage_for(self, spending: float) -> float:
        """Percentage of the limit a spend represents, unrounded."""
        return spending / self.amount * 100

    def record_spending(self, spending: float, calculated_at: datetime | None = None) -> None:
        """Store a recalculated spend and the derived percentage."""
        self.current_spending = round2(spending)
        self.percentage_used = round2(self.percentage_for(self.current_spending))
        self.last_calculated = calculated_at or utc_now()
