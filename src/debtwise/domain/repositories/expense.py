"""Expense repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.expense import Expense


class ExpenseRepository(Protocol):
    """Read access to expenses owned by the expense subsystem."""

    def get_by_id(self, expense_id: int) -> Optional[Expense]:
        """Retrieve an expense by ID."""
        ...

    def list_for_debt(self, debt_id: int, *, status: str | None = None) -> list[Expense]:
        """List expenses linked to a debt, optionally filtered by status."""
        ...
