"""Keeps the repayment ledger in step with debt-linked expense statuses.

An expense linked to a debt moves between ``pending``, ``paid`` and
``missed``. Every transition, including a repeat of the current status, is
applied in one transaction that first clears whatever the expense previously
contributed (its ledger entry and the month's status row) and then writes
what the new status implies:

========  ==============================  =======================
status    ledger                          payment-status row
========  ==============================  =======================
paid      one entry for the expense       ``paid``, penalty 0
missed    nothing                         ``missed``, penalty 0
pending   nothing                         none
========  ==============================  =======================

Clearing before writing makes replays safe: an expense never owns more than
one ledger entry.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlmodel import Session, select

from ..exceptions import NotFoundError, ValidationError
from ..infra.database import SessionFactory, atomic
from ..logging_config import get_logger
from ..models.debt import Debt, Frequency, PaymentStatus, local_now, month_key
from ..models.expense import Expense, ExpenseStatus, LinkedItemType
from .ledger import add_repayment, remove_repayments_for_expense, repayment_for_expense
from .payment_status import clear_payment_status, upsert_payment_status

logger = get_logger("services.expense_link")


def _as_status(value: ExpenseStatus | str) -> ExpenseStatus:
    try:
        return ExpenseStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown expense status: {value!r}") from exc


def is_debt_linked(expense: Expense) -> bool:
    return expense.linked_item_type == LinkedItemType.DEBT.value and expense.linked_item_id is not None


def sync_expense_status(
    session: Session,
    expense: Expense,
    status: ExpenseStatus | str,
    *,
    now: datetime | None = None,
) -> Expense:
    """Apply a status transition to *expense* and its debt inside *session*.

    The caller owns the transaction; nothing is committed here.
    """

    new_status = _as_status(status)
    now = local_now(now)

    if is_debt_linked(expense):
        debt_id = expense.linked_item_id
        if session.get(Debt, debt_id) is None:
            raise NotFoundError(f"Debt {debt_id} linked to expense {expense.id} not found")
        month = month_key(expense.effective_date)

        if (
            new_status is ExpenseStatus.PAID
            and expense.status == ExpenseStatus.PAID.value
            and repayment_for_expense(session, expense.id) is None
        ):
            # Settled by a payoff's final entry; replaying paid changes nothing.
            logger.debug(
                "Expense already settled", extra={"expense_id": expense.id, "debt_id": debt_id}
            )
            return expense

        remove_repayments_for_expense(session, expense.id)
        clear_payment_status(session, debt_id, month)

        if new_status is ExpenseStatus.PAID:
            add_repayment(
                session,
                debt_id,
                expense.amount,
                expense.effective_date,
                frequency=Frequency.ONE_TIME,
                notes=expense.comment or expense.name or None,
                expense_id=expense.id,
            )
            upsert_payment_status(session, debt_id, month, PaymentStatus.PAID)
        elif new_status is ExpenseStatus.MISSED:
            upsert_payment_status(session, debt_id, month, PaymentStatus.MISSED)

    previous = expense.status
    expense.status = new_status.value
    expense.paid_date = now if new_status is ExpenseStatus.PAID else None
    session.add(expense)
    session.flush()
    logger.info(
        "Expense status changed",
        extra={
            "expense_id": expense.id,
            "debt_id": expense.linked_item_id if is_debt_linked(expense) else None,
            "from_status": previous,
            "to_status": new_status.value,
        },
    )
    return expense


def update_expense_status(
    session_factory: SessionFactory,
    expense_id: int,
    status: ExpenseStatus | str,
    *,
    now: datetime | None = None,
) -> Expense:
    """Change an expense's status and synchronize its debt atomically.

    If any step fails the expense keeps its previous status and the ledger
    and payment-status tables are left untouched.
    """

    new_status = _as_status(status)
    with atomic(session_factory, "update_expense_status") as session:
        expense = session.get(Expense, expense_id)
        if expense is None:
            raise NotFoundError(f"Expense {expense_id} not found")
        sync_expense_status(session, expense, new_status, now=now)
        session.expunge(expense)
        return expense


def create_linked_expense(
    session_factory: SessionFactory,
    debt_id: int,
    amount: float,
    expense_date: date,
    *,
    name: str = "Debt repayment",
    due_date: Optional[date] = None,
    currency: Optional[str] = None,
    comment: Optional[str] = None,
    status: ExpenseStatus | str = ExpenseStatus.PENDING,
) -> Expense:
    """Record an expense linked to a debt, applying its initial status."""

    if amount is None or amount <= 0:
        raise ValidationError("Expense amount must be positive")
    initial = _as_status(status)

    with atomic(session_factory, "create_linked_expense") as session:
        debt = session.get(Debt, debt_id)
        if debt is None:
            raise NotFoundError(f"Invalid debt reference: {debt_id}")
        expense = Expense(
            name=name,
            amount=round(amount, 2),
            currency=(currency or debt.currency),
            date=expense_date,
            due_date=due_date,
            status=ExpenseStatus.PENDING.value,
            linked_item_type=LinkedItemType.DEBT.value,
            linked_item_id=debt_id,
            comment=comment,
        )
        session.add(expense)
        session.flush()
        if initial is not ExpenseStatus.PENDING:
            sync_expense_status(session, expense, initial)
        session.expunge(expense)
        return expense


def list_linked_expenses(session_factory: SessionFactory, debt_id: int) -> list[Expense]:
    """Expenses linked to a debt, oldest first."""

    with session_factory() as session:
        rows = list(
            session.exec(
                select(Expense)
                .where(Expense.linked_item_type == LinkedItemType.DEBT.value)
                .where(Expense.linked_item_id == debt_id)
                .order_by(Expense.date, Expense.id)  # type: ignore
            ).all()
        )
        session.expunge_all()
        return rows


__all__ = [
    "create_linked_expense",
    "is_debt_linked",
    "list_linked_expenses",
    "sync_expense_status",
    "update_expense_status",
]
