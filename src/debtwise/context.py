"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .infra.database import SessionFactory, bootstrap_database
from .infra.repositories import (
    SQLModelDebtRepository,
    SQLModelExpenseRepository,
    SQLModelIncomeRepository,
)
from .services.summary import DebtSummaryService


@dataclass
class AppContext:
    """Store handle, repositories and the summary service, wired once."""

    config: BaseConfig
    engine: Engine
    session_factory: SessionFactory

    debt_repo: SQLModelDebtRepository
    expense_repo: SQLModelExpenseRepository
    income_repo: SQLModelIncomeRepository

    summary_service: DebtSummaryService

    def dispose(self) -> None:
        self.engine.dispose()


def create_app_context(config: Optional[BaseConfig] = None) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)

    debt_repo = SQLModelDebtRepository(session_factory)
    expense_repo = SQLModelExpenseRepository(session_factory)
    income_repo = SQLModelIncomeRepository(session_factory)

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        debt_repo=debt_repo,
        expense_repo=expense_repo,
        income_repo=income_repo,
        summary_service=DebtSummaryService(debt_repo, income_repo),
    )
