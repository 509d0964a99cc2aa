"""Per-month paid/missed rows, one per debt per calendar month."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ..models.debt import DebtPaymentStatus, PaymentStatus


def get_payment_status(session: Session, debt_id: int, month: str) -> Optional[DebtPaymentStatus]:
    return session.exec(
        select(DebtPaymentStatus)
        .where(DebtPaymentStatus.debt_id == debt_id)
        .where(DebtPaymentStatus.month == month)
    ).first()


def upsert_payment_status(
    session: Session,
    debt_id: int,
    month: str,
    status: PaymentStatus | str,
    *,
    penalty_rate: float = 0.0,
) -> DebtPaymentStatus:
    """Replace the row for (debt_id, month) with the given status."""

    row = get_payment_status(session, debt_id, month)
    if row is None:
        row = DebtPaymentStatus(debt_id=debt_id, month=month)
    row.status = PaymentStatus(status).value
    row.penalty_rate = penalty_rate
    session.add(row)
    session.flush()
    return row


def clear_payment_status(session: Session, debt_id: int, month: str) -> bool:
    """Delete the row for (debt_id, month); returns whether one existed."""

    row = get_payment_status(session, debt_id, month)
    if row is None:
        return False
    session.delete(row)
    session.flush()
    return True


__all__ = ["clear_payment_status", "get_payment_status", "upsert_payment_status"]
