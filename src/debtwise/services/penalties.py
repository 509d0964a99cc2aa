"""Missed-payment penalty calculations."""

from __future__ import annotations

from typing import Iterable, Sequence

from sqlmodel import select

from ..exceptions import NotFoundError
from ..infra.database import SessionFactory
from ..logging_config import get_logger
from ..models.debt import Debt, DebtPaymentStatus, PaymentStatus

# Each consecutive miss adds this many points, up to MAX_SURCHARGE.
SURCHARGE_PER_MISS = 2.0
MAX_SURCHARGE = 10.0

logger = get_logger("services.penalties")


def penalty_rate(base_rate: float, consecutive_missed: int) -> float:
    """Annual rate after the escalating surcharge for consecutive misses."""

    surcharge = min(max(consecutive_missed, 0) * SURCHARGE_PER_MISS, MAX_SURCHARGE)
    return base_rate + surcharge


def total_penalty(
    amount: float, base_rate: float, escalated_rate: float, months_missed: int
) -> float:
    """Extra cost of the escalated rate over the base rate, excluding base interest."""

    monthly_base = base_rate / 12 / 100
    monthly_penalty = escalated_rate / 12 / 100
    return amount * (monthly_penalty - monthly_base) * months_missed


def consecutive_missed(history: Iterable[DebtPaymentStatus]) -> int:
    """Count trailing 'missed' months ending at the most recent record."""

    ordered = sorted(history, key=lambda row: row.month)
    count = 0
    for row in reversed(ordered):
        if row.status != PaymentStatus.MISSED.value:
            break
        count += 1
    return count


def missed_count(history: Iterable[DebtPaymentStatus]) -> int:
    return sum(1 for row in history if row.status == PaymentStatus.MISSED.value)


def debt_penalty(debt: Debt, history: Sequence[DebtPaymentStatus]) -> float:
    """Penalty accrued on a debt's balance for its current run of misses."""

    streak = consecutive_missed(history)
    if streak == 0 or debt.remaining_amount <= 0:
        return 0.0
    escalated = penalty_rate(debt.interest_rate, streak)
    return total_penalty(debt.remaining_amount, debt.interest_rate, escalated, streak)


def assess_penalties(session_factory: SessionFactory, debt_id: int) -> list[DebtPaymentStatus]:
    """Stamp each missed month with the escalated rate reached at that point.

    Paid months reset the streak and keep a zero penalty rate. Returns the
    debt's status rows, oldest first.
    """

    with session_factory() as session:
        debt = session.get(Debt, debt_id)
        if debt is None:
            raise NotFoundError(f"Debt {debt_id} not found")
        rows = list(
            session.exec(
                select(DebtPaymentStatus)
                .where(DebtPaymentStatus.debt_id == debt_id)
                .order_by(DebtPaymentStatus.month)  # type: ignore
            ).all()
        )
        streak = 0
        changed = 0
        for row in rows:
            if row.status == PaymentStatus.MISSED.value:
                streak += 1
                rate = penalty_rate(debt.interest_rate, streak)
            else:
                streak = 0
                rate = 0.0
            if row.penalty_rate != rate:
                row.penalty_rate = rate
                session.add(row)
                changed += 1
        session.flush()
        session.expunge_all()

    if changed:
        logger.info("Penalty rates assessed", extra={"debt_id": debt_id, "rows_updated": changed})
    return rows


__all__ = [
    "MAX_SURCHARGE",
    "SURCHARGE_PER_MISS",
    "assess_penalties",
    "consecutive_missed",
    "debt_penalty",
    "missed_count",
    "penalty_rate",
    "total_penalty",
]
