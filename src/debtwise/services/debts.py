"""Debt registry: create, update, pay off and delete debts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlmodel import Session, select

from ..exceptions import ComputationError, NotFoundError, ValidationError
from ..infra.database import SessionFactory, atomic
from ..logging_config import get_logger
from ..models.debt import (
    Debt,
    DebtPaymentStatus,
    DebtRepayment,
    Frequency,
    PaymentStatus,
    PeriodUnit,
    local_now,
    month_key,
)
from ..models.expense import Expense, ExpenseStatus, LinkedItemType
from .amortization import calculate_end_date
from .expense_link import sync_expense_status
from .ledger import CENT_TOLERANCE, add_repayment, ledger_total, sync_remaining_amount
from .payment_status import upsert_payment_status

logger = get_logger("services.debts")

# Columns update_debt is allowed to change.
EDITABLE_FIELDS = frozenset(
    {
        "creditor",
        "total_amount",
        "interest_rate",
        "currency",
        "start_date",
        "expected_end_date",
        "frequency",
        "notes",
    }
)


@dataclass(slots=True)
class DebtInput:
    """Terms captured when a debt is registered.

    Either ``expected_end_date`` or ``repayment_period`` + ``period_unit``
    must be supplied; an explicit end date wins.
    """

    creditor: str
    total_amount: float
    start_date: date
    interest_rate: float = 0.0
    expected_end_date: Optional[date] = None
    frequency: str = Frequency.MONTHLY.value
    currency: str = "USD"
    notes: Optional[str] = None
    repayment_period: Optional[int] = None
    period_unit: Optional[str] = None


def _validate_terms(
    *,
    creditor: str,
    total_amount: float,
    interest_rate: float,
    start_date: date,
    expected_end_date: date,
    frequency: str,
) -> None:
    if not creditor or not creditor.strip():
        raise ValidationError("Creditor is required")
    if total_amount is None or total_amount <= 0:
        raise ValidationError("Total amount must be greater than zero")
    if interest_rate is None or interest_rate < 0:
        raise ValidationError("Interest rate cannot be negative")
    if start_date >= expected_end_date:
        raise ValidationError("Start date must be before the expected end date")
    try:
        Frequency(frequency)
    except ValueError as exc:
        raise ValidationError(f"Unknown frequency: {frequency!r}") from exc


def _resolve_end_date(data: DebtInput) -> tuple[date, bool]:
    """Return (expected_end_date, manual_end_date) for the input."""

    if data.expected_end_date is not None:
        return data.expected_end_date, True
    if data.repayment_period is None or data.period_unit is None:
        raise ValidationError("Either an end date or a repayment period is required")
    try:
        PeriodUnit(data.period_unit)
        return calculate_end_date(data.start_date, data.repayment_period, data.period_unit), False
    except (ValueError, ComputationError) as exc:
        raise ValidationError(f"Invalid repayment period: {exc}") from exc


def _require_debt(session: Session, debt_id: int) -> Debt:
    debt = session.get(Debt, debt_id)
    if debt is None:
        raise NotFoundError(f"Debt {debt_id} not found")
    return debt


def _linked_expenses(session: Session, debt_id: int, *, status: str | None = None) -> list[Expense]:
    statement = (
        select(Expense)
        .where(Expense.linked_item_type == LinkedItemType.DEBT.value)
        .where(Expense.linked_item_id == debt_id)
    )
    if status is not None:
        statement = statement.where(Expense.status == status)
    return list(session.exec(statement).all())


def create_debt(session_factory: SessionFactory, data: DebtInput) -> int:
    """Register a new debt with its full balance outstanding; returns the id."""

    end_date, manual = _resolve_end_date(data)
    _validate_terms(
        creditor=data.creditor,
        total_amount=data.total_amount,
        interest_rate=data.interest_rate,
        start_date=data.start_date,
        expected_end_date=end_date,
        frequency=data.frequency,
    )

    with atomic(session_factory, "create_debt") as session:
        debt = Debt(
            creditor=data.creditor.strip(),
            total_amount=round(data.total_amount, 2),
            remaining_amount=round(data.total_amount, 2),
            interest_rate=data.interest_rate,
            currency=(data.currency or "USD").upper(),
            start_date=data.start_date,
            expected_end_date=end_date,
            frequency=Frequency(data.frequency).value,
            repayment_period=data.repayment_period,
            period_unit=PeriodUnit(data.period_unit).value if data.period_unit else None,
            manual_end_date=manual,
            notes=data.notes,
        )
        session.add(debt)
        session.flush()
        debt_id = debt.id

    logger.info(
        "Debt created",
        extra={"debt_id": debt_id, "creditor": data.creditor, "total_amount": data.total_amount},
    )
    return debt_id


def get_debt(session_factory: SessionFactory, debt_id: int) -> Debt:
    """Return a detached debt or raise NotFoundError."""

    with session_factory() as session:
        debt = _require_debt(session, debt_id)
        session.expunge(debt)
        return debt


def list_debts(session_factory: SessionFactory) -> list[Debt]:
    """All debts, soonest expected payoff first."""

    with session_factory() as session:
        rows = list(
            session.exec(select(Debt).order_by(Debt.expected_end_date, Debt.id)).all()  # type: ignore
        )
        session.expunge_all()
        return rows


def update_debt(session_factory: SessionFactory, debt_id: int, **changes: Any) -> Debt:
    """Change a debt's terms; the balance is re-derived in the same transaction."""

    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    with atomic(session_factory, "update_debt") as session:
        debt = _require_debt(session, debt_id)
        merged = {field: changes.get(field, getattr(debt, field)) for field in EDITABLE_FIELDS}
        _validate_terms(
            creditor=merged["creditor"],
            total_amount=merged["total_amount"],
            interest_rate=merged["interest_rate"],
            start_date=merged["start_date"],
            expected_end_date=merged["expected_end_date"],
            frequency=merged["frequency"],
        )
        if "total_amount" in changes and changes["total_amount"] < ledger_total(session, debt_id):
            raise ValidationError("Total amount cannot be below the amount already repaid")

        for field, value in changes.items():
            if field == "frequency":
                value = Frequency(value).value
            elif field == "creditor":
                value = value.strip()
            setattr(debt, field, value)
        if "expected_end_date" in changes:
            debt.manual_end_date = True
        debt.updated_at = datetime.now(timezone.utc)
        session.add(debt)
        session.flush()
        sync_remaining_amount(session, debt)
        session.expunge(debt)

    logger.info("Debt updated", extra={"debt_id": debt_id, "fields": sorted(changes)})
    return debt


def mark_paid_off(
    session_factory: SessionFactory, debt_id: int, *, now: datetime | None = None
) -> Debt:
    """Settle a debt in full.

    Pending linked expenses are marked paid first, each with its own ledger
    entry while the balance covers it. A final entry then records whatever
    is still outstanding and the current month is flagged as paid. Calling
    it again on a settled debt changes nothing.
    """

    now = local_now(now)
    with atomic(session_factory, "mark_paid_off") as session:
        debt = _require_debt(session, debt_id)
        sync_remaining_amount(session, debt)

        pending = _linked_expenses(session, debt_id, status=ExpenseStatus.PENDING.value)
        for expense in sorted(pending, key=lambda e: (e.effective_date, e.id)):
            if expense.amount <= debt.remaining_amount + CENT_TOLERANCE:
                sync_expense_status(session, expense, ExpenseStatus.PAID, now=now)
            else:
                # Covered by the final entry below.
                expense.status = ExpenseStatus.PAID.value
                expense.paid_date = now
                session.add(expense)

        settled = 0.0
        if debt.remaining_amount > 0:
            settled = debt.remaining_amount
            add_repayment(
                session,
                debt_id,
                settled,
                now.date(),
                frequency=Frequency.ONE_TIME,
                notes="Marked as paid off",
            )

        upsert_payment_status(session, debt_id, month_key(now.date()), PaymentStatus.PAID)
        session.flush()
        session.expunge(debt)

    if settled or pending:
        logger.info(
            "Debt marked as paid off",
            extra={"debt_id": debt_id, "final_payment": settled, "expenses_settled": len(pending)},
        )
    else:
        logger.debug("Debt already paid off", extra={"debt_id": debt_id})
    return debt


def delete_debt(session_factory: SessionFactory, debt_id: int) -> dict[str, int]:
    """Delete a debt with its linked expenses, ledger and payment history.

    Returns the number of rows removed per table.
    """

    with atomic(session_factory, "delete_debt") as session:
        debt = _require_debt(session, debt_id)

        expenses = _linked_expenses(session, debt_id)
        for expense in expenses:
            session.delete(expense)
        session.flush()

        repayments = session.exec(
            select(DebtRepayment).where(DebtRepayment.debt_id == debt_id)
        ).all()
        for entry in repayments:
            session.delete(entry)
        session.flush()

        statuses = session.exec(
            select(DebtPaymentStatus).where(DebtPaymentStatus.debt_id == debt_id)
        ).all()
        for row in statuses:
            session.delete(row)
        session.flush()

        session.delete(debt)
        session.flush()

    removed = {
        "expenses": len(expenses),
        "repayments": len(repayments),
        "payment_statuses": len(statuses),
        "debts": 1,
    }
    logger.info("Debt deleted", extra={"debt_id": debt_id, "removed": removed})
    return removed


__all__ = [
    "DebtInput",
    "EDITABLE_FIELDS",
    "create_debt",
    "delete_debt",
    "get_debt",
    "list_debts",
    "mark_paid_off",
    "update_debt",
]
