"""DynamoDB repositories."""

from finpulse.repositories.base import BaseRepository
from finpulse.repositories.budget import BudgetRepository
from finpulse.repositories.transaction import TransactionRepository
from finpulse.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "BudgetRepository",
    "TransactionRepository",
    "UserRepository",
]
