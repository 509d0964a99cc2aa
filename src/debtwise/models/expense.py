"""Expense records owned by the expense subsystem.

Only the columns the debt engine reads or writes are modelled here; the
status of an expense linked to a debt drives the repayment ledger.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import ClassVar, Optional

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    MISSED = "missed"


class LinkedItemType(str, Enum):
    INVESTMENT = "investment"
    DEBT = "debt"


class Expense(SQLModel, table=True):
    """A bill or payment, optionally linked to a debt or investment."""

    __tablename__: ClassVar[str] = "expenses"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid', 'missed')", name="ck_expenses_status"),
        CheckConstraint(
            "linked_item_type IS NULL OR linked_item_id IS NOT NULL",
            name="ck_expenses_link_consistency",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(default="", max_length=120)
    amount: float = Field(nullable=False)
    currency: str = Field(default="USD", max_length=3)
    date: dt.date = Field(nullable=False, index=True)
    due_date: Optional[dt.date] = Field(default=None)
    paid_date: Optional[dt.datetime] = Field(default=None)
    status: str = Field(default=ExpenseStatus.PENDING.value, nullable=False, max_length=8)
    linked_item_type: Optional[str] = Field(default=None, max_length=16)
    linked_item_id: Optional[int] = Field(default=None, index=True)
    comment: Optional[str] = Field(default=None, max_length=255)
    created_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc), nullable=False
    )

    @property
    def effective_date(self) -> dt.date:
        """Date the payment counts against: the due date when present."""

        return self.due_date or self.date
