"""Repayment ledger: append-only money movements and the balance invariant.

Every function that inserts or deletes ledger rows finishes by calling
:func:`sync_remaining_amount` on the affected debt inside the caller's
session, so ``remaining_amount == total_amount - sum(ledger)`` holds whenever
that session commits.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from ..exceptions import NotFoundError, OverpaymentError, ValidationError
from ..infra.database import SessionFactory, atomic
from ..logging_config import get_logger
from ..models.debt import Debt, DebtRepayment, Frequency

# Amounts closer than half a cent are treated as equal.
CENT_TOLERANCE = 0.005

logger = get_logger("services.ledger")


def _round_currency(amount: float) -> float:
    return round(amount, 2)


def ledger_total(session: Session, debt_id: int) -> float:
    """Sum of every ledger entry recorded against a debt."""

    total = session.exec(
        select(func.coalesce(func.sum(DebtRepayment.amount), 0.0)).where(
            DebtRepayment.debt_id == debt_id
        )
    ).one()
    return float(total)


def sync_remaining_amount(session: Session, debt: Debt) -> Debt:
    """Re-derive ``remaining_amount`` from the ledger for *debt*."""

    remaining = _round_currency(debt.total_amount - ledger_total(session, debt.id))
    if remaining != debt.remaining_amount:
        debt.remaining_amount = remaining
        debt.updated_at = datetime.now(timezone.utc)
        session.add(debt)
        session.flush()
    return debt


def _require_debt(session: Session, debt_id: int) -> Debt:
    debt = session.get(Debt, debt_id)
    if debt is None:
        raise NotFoundError(f"Debt {debt_id} not found")
    return debt


def add_repayment(
    session: Session,
    debt_id: int,
    amount: float,
    repayment_date: date,
    *,
    frequency: Frequency | str = Frequency.ONE_TIME,
    notes: Optional[str] = None,
    expense_id: Optional[int] = None,
) -> DebtRepayment:
    """Append a ledger entry and re-establish the balance invariant.

    Raises:
        ValidationError: amount is not positive.
        OverpaymentError: amount exceeds the outstanding balance.
        NotFoundError: the debt does not exist.
    """

    if amount is None or amount <= 0:
        raise ValidationError("Repayment amount must be positive")
    debt = _require_debt(session, debt_id)
    sync_remaining_amount(session, debt)
    if amount > debt.remaining_amount + CENT_TOLERANCE:
        raise OverpaymentError(
            f"Repayment of {amount:.2f} exceeds remaining balance "
            f"{debt.remaining_amount:.2f} on debt {debt_id}"
        )

    entry = DebtRepayment(
        debt_id=debt_id,
        expense_id=expense_id,
        amount=_round_currency(amount),
        repayment_date=repayment_date,
        frequency=Frequency(frequency).value,
        notes=notes,
    )
    session.add(entry)
    session.flush()
    sync_remaining_amount(session, debt)
    logger.info(
        "Repayment recorded",
        extra={
            "debt_id": debt_id,
            "amount": entry.amount,
            "expense_id": expense_id,
            "remaining_amount": debt.remaining_amount,
        },
    )
    return entry


def repayment_for_expense(session: Session, expense_id: int) -> Optional[DebtRepayment]:
    """The ledger entry tagged with *expense_id*, if any."""

    return session.exec(
        select(DebtRepayment).where(DebtRepayment.expense_id == expense_id)
    ).first()


def remove_repayments_for_expense(session: Session, expense_id: int) -> int:
    """Delete any ledger entry tagged with *expense_id*; returns rows removed."""

    entries = session.exec(
        select(DebtRepayment).where(DebtRepayment.expense_id == expense_id)
    ).all()
    if not entries:
        return 0
    debt_ids = {entry.debt_id for entry in entries}
    for entry in entries:
        session.delete(entry)
    session.flush()
    for debt_id in debt_ids:
        debt = session.get(Debt, debt_id)
        if debt is not None:
            sync_remaining_amount(session, debt)
    logger.debug(
        "Ledger entries removed for expense",
        extra={"expense_id": expense_id, "rows": len(entries)},
    )
    return len(entries)


def list_repayments(session: Session, debt_id: int) -> list[DebtRepayment]:
    """Ledger entries for a debt, oldest first."""

    return list(
        session.exec(
            select(DebtRepayment)
            .where(DebtRepayment.debt_id == debt_id)
            .order_by(DebtRepayment.repayment_date, DebtRepayment.id)  # type: ignore
        ).all()
    )


def record_repayment(
    session_factory: SessionFactory,
    debt_id: int,
    amount: float,
    repayment_date: date,
    *,
    frequency: Frequency | str = Frequency.ONE_TIME,
    notes: Optional[str] = None,
) -> DebtRepayment:
    """Record a manual repayment not tied to an expense in its own transaction."""

    with atomic(session_factory, "record_repayment") as session:
        entry = add_repayment(
            session,
            debt_id,
            amount,
            repayment_date,
            frequency=frequency,
            notes=notes,
        )
        session.expunge(entry)
        return entry


__all__ = [
    "CENT_TOLERANCE",
    "add_repayment",
    "ledger_total",
    "list_repayments",
    "record_repayment",
    "remove_repayments_for_expense",
    "repayment_for_expense",
    "sync_remaining_amount",
]
