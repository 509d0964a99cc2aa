"""Debt, repayment ledger and payment-status entities."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar, Optional

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Frequency(str, Enum):
    """Repayment cadence of a debt or a single ledger entry."""

    ONE_TIME = "One-time"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class PeriodUnit(str, Enum):
    """Unit used when a repayment period is given instead of an end date."""

    WEEKS = "Weeks"
    MONTHS = "Months"
    YEARS = "Years"


class PaymentStatus(str, Enum):
    """Outcome recorded for a debt in a calendar month."""

    PAID = "paid"
    MISSED = "missed"


_FREQUENCIES = ", ".join(f"'{f.value}'" for f in Frequency)


class Debt(SQLModel, table=True):
    """A loan or credit line whose balance is derived from its repayments."""

    __tablename__: ClassVar[str] = "debts"
    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_debts_total_positive"),
        CheckConstraint("interest_rate >= 0", name="ck_debts_rate_non_negative"),
        CheckConstraint(f"frequency IN ({_FREQUENCIES})", name="ck_debts_frequency"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    creditor: str = Field(nullable=False, max_length=120, index=True)
    total_amount: float = Field(nullable=False)
    # Maintained by services.ledger.sync_remaining_amount, never set directly.
    remaining_amount: float = Field(nullable=False)
    interest_rate: float = Field(default=0.0, nullable=False, description="Annual percent")
    currency: str = Field(default="USD", max_length=3, description="ISO-4217 currency code")
    start_date: date = Field(nullable=False)
    expected_end_date: date = Field(nullable=False, index=True)
    frequency: str = Field(default=Frequency.MONTHLY.value, nullable=False, max_length=16)
    repayment_period: Optional[int] = Field(default=None)
    period_unit: Optional[str] = Field(default=None, max_length=8)
    manual_end_date: bool = Field(default=False, nullable=False)
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)

    @property
    def is_active(self) -> bool:
        return self.remaining_amount > 0

    @property
    def paid_ratio(self) -> float:
        """Share of the principal already repaid, between 0 and 1."""

        if self.total_amount <= 0:
            return 0.0
        return max(0.0, min(1.0, 1 - self.remaining_amount / self.total_amount))


class DebtRepayment(SQLModel, table=True):
    """Append-only ledger entry recording money paid against a debt."""

    __tablename__: ClassVar[str] = "debt_repayments"

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(foreign_key="debts.id", nullable=False, index=True, ondelete="CASCADE")
    # At most one ledger entry per expense; NULLs are not constrained.
    expense_id: Optional[int] = Field(
        default=None, foreign_key="expenses.id", unique=True, index=True, ondelete="SET NULL"
    )
    amount: float = Field(nullable=False)
    repayment_date: date = Field(nullable=False)
    frequency: str = Field(default=Frequency.ONE_TIME.value, nullable=False, max_length=16)
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


class DebtPaymentStatus(SQLModel, table=True):
    """Per-month paid/missed marker for a debt; one row per debt per month."""

    __tablename__: ClassVar[str] = "debt_payment_status"
    __table_args__ = (
        UniqueConstraint("debt_id", "month", name="uq_debt_payment_status_month"),
        CheckConstraint("status IN ('paid', 'missed')", name="ck_debt_payment_status"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(foreign_key="debts.id", nullable=False, index=True, ondelete="CASCADE")
    month: str = Field(nullable=False, max_length=7, description="YYYY-MM")
    status: str = Field(nullable=False, max_length=8)
    penalty_rate: float = Field(default=0.0, nullable=False)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


def local_now(value: datetime | None = None) -> datetime:
    """Timezone-aware timestamp on the local calendar; naive values are taken as local."""

    if value is None:
        return datetime.now().astimezone()
    return value if value.tzinfo is not None else value.astimezone()


def month_key(value: date) -> str:
    """Return the ``YYYY-MM`` key used by payment-status rows."""

    return value.strftime("%Y-%m")


__all__ = [
    "Debt",
    "DebtPaymentStatus",
    "DebtRepayment",
    "Frequency",
    "PaymentStatus",
    "PeriodUnit",
    "local_now",
    "month_key",
]
