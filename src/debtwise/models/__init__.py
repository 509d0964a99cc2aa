"""SQLModel table exports."""

from .debt import Debt, DebtPaymentStatus, DebtRepayment, Frequency, PaymentStatus, PeriodUnit
from .expense import Expense, ExpenseStatus, LinkedItemType
from .income import Income

__all__ = [
    "Debt",
    "DebtPaymentStatus",
    "DebtRepayment",
    "Expense",
    "ExpenseStatus",
    "Frequency",
    "Income",
    "LinkedItemType",
    "PaymentStatus",
    "PeriodUnit",
]
