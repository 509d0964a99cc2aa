"""Penalty escalation and accrual tests."""

from __future__ import annotations

from datetime import date

import pytest

from debtwise.exceptions import NotFoundError
from debtwise.models import Debt, DebtPaymentStatus
from debtwise.services.expense_link import update_expense_status
from debtwise.services.penalties import (
    assess_penalties,
    consecutive_missed,
    debt_penalty,
    penalty_rate,
    total_penalty,
)
from tests.conftest import assert_float_equal


def _row(month: str, status: str) -> DebtPaymentStatus:
    return DebtPaymentStatus(debt_id=1, month=month, status=status)


def test_penalty_rate_escalates_two_points_per_miss():
    assert penalty_rate(10, 3) == 16
    assert penalty_rate(10, 0) == 10


def test_penalty_rate_caps_surcharge_at_ten_points():
    assert penalty_rate(10, 5) == 20
    assert penalty_rate(10, 12) == 20


def test_total_penalty_counts_only_the_surcharge():
    # 12,000 at +6 points for 3 months: 12000 * 0.005 * 3
    assert_float_equal(total_penalty(12_000, 10, 16, 3), 180.0)
    assert total_penalty(12_000, 10, 10, 3) == 0


def test_consecutive_missed_counts_trailing_run():
    history = [
        _row("2025-01", "missed"),
        _row("2025-02", "paid"),
        _row("2025-04", "missed"),
        _row("2025-03", "missed"),
    ]
    assert consecutive_missed(history) == 2


def test_consecutive_missed_resets_on_latest_paid():
    history = [_row("2025-01", "missed"), _row("2025-02", "paid")]
    assert consecutive_missed(history) == 0
    assert consecutive_missed([]) == 0


def test_debt_penalty_uses_remaining_balance():
    debt = Debt(
        creditor="Card",
        total_amount=20_000,
        remaining_amount=12_000,
        interest_rate=10,
        start_date=date(2025, 1, 1),
        expected_end_date=date(2026, 1, 1),
    )
    history = [_row("2025-01", "missed"), _row("2025-02", "missed"), _row("2025-03", "missed")]
    assert_float_equal(debt_penalty(debt, history), 180.0)


def test_assess_penalties_stamps_escalated_rates(
    session_factory, debt_factory, expense_factory, store
):
    debt = debt_factory(interest_rate=10.0, start_date=date(2025, 1, 1))
    months = [date(2025, 2, 1), date(2025, 3, 1), date(2025, 4, 1), date(2025, 5, 1)]
    outcomes = ["missed", "missed", "paid", "missed"]
    for when, outcome in zip(months, outcomes):
        expense = expense_factory(debt.id, amount=50.0, expense_date=when)
        update_expense_status(session_factory, expense.id, outcome)

    rows = assess_penalties(session_factory, debt.id)

    assert [r.month for r in rows] == ["2025-02", "2025-03", "2025-04", "2025-05"]
    assert [r.penalty_rate for r in rows] == [12.0, 14.0, 0.0, 12.0]
    stored = {r.month: r.penalty_rate for r in store.statuses(debt.id)}
    assert stored["2025-03"] == 14.0


def test_assess_penalties_unknown_debt(session_factory):
    with pytest.raises(NotFoundError):
        assess_penalties(session_factory, 999)
