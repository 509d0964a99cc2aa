"""Service module exports."""

from . import (
    amortization,
    debts,
    expense_link,
    ledger,
    payment_status,
    penalties,
    summary,
)

__all__ = [
    "amortization",
    "debts",
    "expense_link",
    "ledger",
    "payment_status",
    "penalties",
    "summary",
]
