"""Income source protocol."""

from __future__ import annotations

from typing import Protocol


class IncomeRepository(Protocol):
    """Supplies the aggregated monthly income figure."""

    def monthly_total(self) -> float:
        """Return recurring income normalized to one month."""
        ...
