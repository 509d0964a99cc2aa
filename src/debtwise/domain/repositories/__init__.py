"""Repository protocol definitions for domain layer."""

from .debt import DebtRepository
from .expense import ExpenseRepository
from .income import IncomeRepository

__all__ = ["DebtRepository", "ExpenseRepository", "IncomeRepository"]
