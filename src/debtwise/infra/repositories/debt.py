"""SQLModel implementation of the Debt repository."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlmodel import select

from ...models.debt import Debt, DebtPaymentStatus, DebtRepayment
from ..database import SessionFactory


class SQLModelDebtRepository:
    """SQLModel-based debt repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, debt_id: int) -> Optional[Debt]:
        """Retrieve a debt by ID."""
        with self.session_factory() as session:
            obj = session.get(Debt, debt_id)
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self) -> list[Debt]:
        """List all debts, soonest expected payoff first."""
        with self.session_factory() as session:
            statement = select(Debt).order_by(Debt.expected_end_date, Debt.id)  # type: ignore
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_active(self) -> list[Debt]:
        """List debts with a positive remaining balance."""
        with self.session_factory() as session:
            statement = (
                select(Debt)
                .where(Debt.remaining_amount > 0)
                .order_by(Debt.expected_end_date, Debt.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_repayments(self, debt_id: int) -> list[DebtRepayment]:
        """List ledger entries for a debt, oldest first."""
        with self.session_factory() as session:
            statement = (
                select(DebtRepayment)
                .where(DebtRepayment.debt_id == debt_id)
                .order_by(DebtRepayment.repayment_date, DebtRepayment.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_payment_statuses(self, debt_id: int | None = None) -> list[DebtPaymentStatus]:
        """List payment-status rows ordered by debt then month."""
        with self.session_factory() as session:
            statement = select(DebtPaymentStatus)
            if debt_id is not None:
                statement = statement.where(DebtPaymentStatus.debt_id == debt_id)
            statement = statement.order_by(
                DebtPaymentStatus.debt_id, DebtPaymentStatus.month  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def get_total_outstanding(self) -> float:
        """Sum of remaining balances across all debts."""
        with self.session_factory() as session:
            total = session.exec(select(func.coalesce(func.sum(Debt.remaining_amount), 0.0))).one()
            return float(total)


__all__ = ["SQLModelDebtRepository"]
