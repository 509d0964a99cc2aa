"""Pytest configuration and shared fixtures for DebtWise tests.

Every test gets its own temporary SQLite file built through the same engine
hooks the application uses, so transactions, pragmas and foreign keys behave
as they do in production.
"""

from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlmodel import select

from debtwise.config import TestConfig
from debtwise.infra.database import create_db_engine, create_session_factory, init_database
from debtwise.models import Debt, DebtPaymentStatus, DebtRepayment, Expense
from debtwise.services.debts import DebtInput, create_debt, get_debt
from debtwise.services.expense_link import create_linked_expense

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a per-test temporary directory."""
    return TestConfig(tmp_path)


@pytest.fixture
def db_engine(config):
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine with all tables created
    """
    engine = create_db_engine(config)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Factory returning committing session scopes, as the services expect."""
    return create_session_factory(db_engine)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def debt_factory(session_factory):
    """Factory for registering test debts through the registry.

    Returns:
        Callable: Function that creates a debt and returns the stored row
    """

    def _create_debt(
        creditor: str = "Test Bank",
        total_amount: float = 1000.0,
        interest_rate: float = 0.0,
        start_date: date | None = None,
        expected_end_date: date | None = None,
        frequency: str = "Monthly",
        repayment_period: int | None = 10,
        period_unit: str | None = "Months",
    ) -> Debt:
        """Create a debt; defaults to 1000 at 0% over ten monthly periods from today."""
        debt_id = create_debt(
            session_factory,
            DebtInput(
                creditor=creditor,
                total_amount=total_amount,
                interest_rate=interest_rate,
                start_date=start_date or date.today(),
                expected_end_date=expected_end_date,
                frequency=frequency,
                repayment_period=None if expected_end_date else repayment_period,
                period_unit=None if expected_end_date else period_unit,
            ),
        )
        return get_debt(session_factory, debt_id)

    return _create_debt


@pytest.fixture
def expense_factory(session_factory):
    """Factory for pending expenses linked to a debt."""

    def _create_expense(
        debt_id: int,
        amount: float = 100.0,
        expense_date: date | None = None,
        due_date: date | None = None,
        status: str = "pending",
    ) -> Expense:
        return create_linked_expense(
            session_factory,
            debt_id,
            amount,
            expense_date or date.today(),
            due_date=due_date,
            status=status,
        )

    return _create_expense


@pytest.fixture
def store(session_factory):
    """Read helpers for asserting on raw table contents."""

    class _Store:
        def debt(self, debt_id: int) -> Debt | None:
            with session_factory() as session:
                row = session.get(Debt, debt_id)
                if row:
                    session.expunge(row)
                return row

        def repayments(self, debt_id: int | None = None) -> list[DebtRepayment]:
            with session_factory() as session:
                statement = select(DebtRepayment)
                if debt_id is not None:
                    statement = statement.where(DebtRepayment.debt_id == debt_id)
                rows = list(session.exec(statement).all())
                session.expunge_all()
                return rows

        def statuses(self, debt_id: int | None = None) -> list[DebtPaymentStatus]:
            with session_factory() as session:
                statement = select(DebtPaymentStatus)
                if debt_id is not None:
                    statement = statement.where(DebtPaymentStatus.debt_id == debt_id)
                rows = list(session.exec(statement).all())
                session.expunge_all()
                return rows

        def expense(self, expense_id: int) -> Expense | None:
            with session_factory() as session:
                row = session.get(Expense, expense_id)
                if row:
                    session.expunge(row)
                return row

        def assert_ledger_invariant(self, debt_id: int) -> None:
            debt = self.debt(debt_id)
            repaid = sum(entry.amount for entry in self.repayments(debt_id))
            assert_float_equal(debt.remaining_amount, debt.total_amount - repaid)

    return _Store()


# =============================================================================
# Helpers
# =============================================================================


def assert_float_equal(actual: float, expected: float, tolerance: float = 0.01):
    """Assert that two money amounts are equal within a cent.

    Args:
        actual: Actual value
        expected: Expected value
        tolerance: Maximum allowed difference (default 0.01 = 1 cent)
    """
    assert abs(actual - expected) < tolerance, (
        f"Expected {expected}, got {actual} (diff: {abs(actual - expected)})"
    )


def assert_same_instant(actual: datetime, expected: datetime):
    """Assert that a stored timestamp matches an aware expected value.

    SQLite keeps no offset, so a naive value read back is compared as if it
    carried the expected value's timezone.
    """
    assert expected.tzinfo is not None
    if actual.tzinfo is None:
        actual = actual.replace(tzinfo=expected.tzinfo)
    assert actual == expected, f"Expected {expected}, got {actual}"
