"""Concrete repository implementations using SQLModel."""

from .debt import SQLModelDebtRepository
from .expense import SQLModelExpenseRepository
from .income import SQLModelIncomeRepository

__all__ = [
    "SQLModelDebtRepository",
    "SQLModelExpenseRepository",
    "SQLModelIncomeRepository",
]
