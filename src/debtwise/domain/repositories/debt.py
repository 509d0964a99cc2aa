"""Debt repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.debt import Debt, DebtPaymentStatus, DebtRepayment


class DebtRepository(Protocol):
    """Read access to debts, their ledger and their payment history."""

    def get_by_id(self, debt_id: int) -> Optional[Debt]:
        """Retrieve a debt by ID."""
        ...

    def list_all(self) -> list[Debt]:
        """List all debts ordered by expected end date."""
        ...

    def list_active(self) -> list[Debt]:
        """List debts with a positive remaining balance."""
        ...

    def list_repayments(self, debt_id: int) -> list[DebtRepayment]:
        """List ledger entries for a debt, oldest first."""
        ...

    def list_payment_statuses(self, debt_id: int | None = None) -> list[DebtPaymentStatus]:
        """List payment-status rows, oldest month first."""
        ...

    def get_total_outstanding(self) -> float:
        """Sum of remaining balances."""
        ...
