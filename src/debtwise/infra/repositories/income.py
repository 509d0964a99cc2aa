"""SQLModel implementation of the Income repository."""

from __future__ import annotations

from sqlmodel import select

from ...models.income import Income
from ..database import SessionFactory

# Multipliers converting an income amount to its monthly equivalent.
MONTHLY_FACTORS = {
    "weekly": 52 / 12,
    "biweekly": 26 / 12,
    "monthly": 1.0,
    "yearly": 1 / 12,
}


class SQLModelIncomeRepository:
    """Derives the monthly income figure from recurring income rows."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def add(self, income: Income) -> Income:
        with self.session_factory() as session:
            session.add(income)
            session.flush()
            session.refresh(income)
            session.expunge(income)
            return income

    def monthly_total(self) -> float:
        """Return recurring income normalized to one month; one-off income is ignored."""
        with self.session_factory() as session:
            rows = session.exec(select(Income)).all()
            total = 0.0
            for row in rows:
                factor = MONTHLY_FACTORS.get((row.frequency or "").strip().lower())
                if factor is None:
                    continue
                total += row.amount * factor
            return round(total, 2)


__all__ = ["MONTHLY_FACTORS", "SQLModelIncomeRepository"]
