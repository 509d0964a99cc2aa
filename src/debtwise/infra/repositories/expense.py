"""SQLModel implementation of the Expense repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select

from ...models.expense import Expense, LinkedItemType
from ..database import SessionFactory


class SQLModelExpenseRepository:
    """Read-side access to expenses linked to debts."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, expense_id: int) -> Optional[Expense]:
        with self.session_factory() as session:
            obj = session.get(Expense, expense_id)
            if obj:
                session.expunge(obj)
            return obj

    def list_for_debt(self, debt_id: int, *, status: str | None = None) -> list[Expense]:
        """List expenses linked to a debt, oldest first."""
        with self.session_factory() as session:
            statement = (
                select(Expense)
                .where(Expense.linked_item_type == LinkedItemType.DEBT.value)
                .where(Expense.linked_item_id == debt_id)
            )
            if status is not None:
                statement = statement.where(Expense.status == status)
            statement = statement.order_by(Expense.date, Expense.id)  # type: ignore
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows


__all__ = ["SQLModelExpenseRepository"]
