"""Debt registry tests: creation, edits, payoff and cascading delete."""

from __future__ import annotations

import threading
import time
from datetime import date, datetime, timezone

import pytest

from debtwise.exceptions import NotFoundError, ValidationError
from debtwise.models.debt import local_now
from debtwise.services import debts as debts_service
from debtwise.services.debts import (
    DebtInput,
    create_debt,
    delete_debt,
    get_debt,
    list_debts,
    mark_paid_off,
    update_debt,
)
from debtwise.services.expense_link import update_expense_status
from debtwise.services.ledger import record_repayment
from tests.conftest import assert_float_equal, assert_same_instant


def _input(**overrides) -> DebtInput:
    values = dict(
        creditor="Credit Union",
        total_amount=1000.0,
        start_date=date(2025, 1, 31),
        interest_rate=5.0,
        repayment_period=12,
        period_unit="Months",
    )
    values.update(overrides)
    return DebtInput(**values)


class TestCreateDebt:
    def test_end_date_derived_from_period(self, session_factory):
        debt = get_debt(session_factory, create_debt(session_factory, _input()))

        assert debt.expected_end_date == date(2026, 1, 31)
        assert debt.manual_end_date is False
        assert debt.remaining_amount == debt.total_amount == 1000.0
        assert debt.frequency == "Monthly"
        assert debt.currency == "USD"

    def test_explicit_end_date_wins(self, session_factory):
        debt_id = create_debt(session_factory, _input(expected_end_date=date(2025, 7, 31)))
        debt = get_debt(session_factory, debt_id)

        assert debt.expected_end_date == date(2025, 7, 31)
        assert debt.manual_end_date is True

    def test_weekly_period(self, session_factory):
        debt_id = create_debt(
            session_factory,
            _input(start_date=date(2025, 1, 1), repayment_period=4, period_unit="Weeks"),
        )
        assert get_debt(session_factory, debt_id).expected_end_date == date(2025, 1, 29)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"creditor": "   "},
            {"total_amount": 0},
            {"total_amount": -5.0},
            {"interest_rate": -1.0},
            {"expected_end_date": date(2025, 1, 31)},
            {"expected_end_date": date(2024, 12, 31)},
            {"frequency": "Daily"},
            {"repayment_period": None},
            {"period_unit": "Days"},
            {"repayment_period": 0},
        ],
    )
    def test_invalid_terms_rejected(self, session_factory, overrides):
        with pytest.raises(ValidationError):
            create_debt(session_factory, _input(**overrides))
        assert list_debts(session_factory) == []


class TestQueries:
    def test_get_unknown_debt(self, session_factory):
        with pytest.raises(NotFoundError):
            get_debt(session_factory, 42)

    def test_list_orders_by_expected_end_date(self, session_factory, debt_factory):
        start = date(2025, 1, 1)
        later = debt_factory(creditor="Later", start_date=start, expected_end_date=date(2030, 1, 1))
        sooner = debt_factory(creditor="Sooner", start_date=start, expected_end_date=date(2027, 1, 1))

        assert [d.id for d in list_debts(session_factory)] == [sooner.id, later.id]


class TestUpdateDebt:
    def test_terms_change(self, session_factory, debt_factory):
        debt = debt_factory(interest_rate=5.0)

        updated = update_debt(
            session_factory, debt.id, interest_rate=7.5, creditor=" New Bank ", frequency="Weekly"
        )

        assert updated.interest_rate == 7.5
        assert updated.creditor == "New Bank"
        assert updated.frequency == "Weekly"

    def test_new_end_date_is_manual(self, session_factory, debt_factory):
        debt = debt_factory(start_date=date(2025, 1, 1))
        updated = update_debt(session_factory, debt.id, expected_end_date=date(2027, 1, 1))
        assert updated.manual_end_date is True

    def test_total_change_rederives_balance(self, session_factory, debt_factory, store):
        debt = debt_factory(total_amount=1000.0)
        record_repayment(session_factory, debt.id, 250.0, date(2025, 2, 1))

        updated = update_debt(session_factory, debt.id, total_amount=1500.0)

        assert_float_equal(updated.remaining_amount, 1250.0)
        store.assert_ledger_invariant(debt.id)

    def test_total_below_repaid_rejected(self, session_factory, debt_factory, store):
        debt = debt_factory(total_amount=1000.0)
        record_repayment(session_factory, debt.id, 600.0, date(2025, 2, 1))

        with pytest.raises(ValidationError):
            update_debt(session_factory, debt.id, total_amount=500.0)
        assert store.debt(debt.id).total_amount == 1000.0

    def test_unknown_field_rejected(self, session_factory, debt_factory):
        debt = debt_factory()
        with pytest.raises(ValidationError):
            update_debt(session_factory, debt.id, remaining_amount=0)

    def test_unknown_debt(self, session_factory):
        with pytest.raises(NotFoundError):
            update_debt(session_factory, 7, interest_rate=1.0)


class TestMarkPaidOff:
    def test_settles_balance_expenses_and_month(
        self, session_factory, debt_factory, expense_factory, store
    ):
        debt = debt_factory(total_amount=1000.0, start_date=date(2025, 1, 1))
        record_repayment(session_factory, debt.id, 300.0, date(2025, 2, 1))
        pending = [
            expense_factory(debt.id, amount=100.0, expense_date=date(2025, 3, 1)),
            expense_factory(debt.id, amount=100.0, expense_date=date(2025, 4, 1)),
        ]
        now = datetime(2025, 6, 15, 9, 30, tzinfo=timezone.utc)

        result = mark_paid_off(session_factory, debt.id, now=now)

        assert result.remaining_amount == 0.0
        entries = store.repayments(debt.id)
        assert len(entries) == 4
        assert_float_equal(sum(e.amount for e in entries), 1000.0)
        assert sorted(e.expense_id for e in entries if e.expense_id) == [e.id for e in pending]
        final = max(entries, key=lambda e: e.id)
        assert final.expense_id is None
        assert_float_equal(final.amount, 500.0)
        assert final.repayment_date == date(2025, 6, 15)
        for expense in pending:
            stored = store.expense(expense.id)
            assert stored.status == "paid"
            assert_same_instant(stored.paid_date, now)
        statuses = sorted((s.month, s.status) for s in store.statuses(debt.id))
        assert statuses == [("2025-03", "paid"), ("2025-04", "paid"), ("2025-06", "paid")]
        store.assert_ledger_invariant(debt.id)

    def test_second_call_changes_nothing(self, session_factory, debt_factory, store):
        debt = debt_factory(total_amount=400.0)
        now = datetime(2025, 6, 15, 9, 30, tzinfo=timezone.utc)
        mark_paid_off(session_factory, debt.id, now=now)
        first = [(e.id, e.amount) for e in store.repayments(debt.id)]

        again = mark_paid_off(session_factory, debt.id, now=now)

        assert again.remaining_amount == 0.0
        assert [(e.id, e.amount) for e in store.repayments(debt.id)] == first
        assert len(store.statuses(debt.id)) == 1

    def test_default_timestamp_is_recorded(
        self, session_factory, debt_factory, expense_factory, store
    ):
        debt = debt_factory(total_amount=400.0)
        expense = expense_factory(debt.id, amount=100.0)

        mark_paid_off(session_factory, debt.id)

        stored = store.expense(expense.id)
        assert stored.status == "paid"
        assert stored.paid_date is not None
        assert store.debt(debt.id).remaining_amount == 0.0

    def test_replaying_paid_after_payoff_changes_nothing(
        self, session_factory, debt_factory, expense_factory, store
    ):
        debt = debt_factory(total_amount=150.0, start_date=date(2025, 1, 1))
        covered = expense_factory(debt.id, amount=100.0, expense_date=date(2025, 3, 1))
        oversized = expense_factory(debt.id, amount=100.0, expense_date=date(2025, 4, 1))
        mark_paid_off(session_factory, debt.id, now=datetime(2025, 6, 1, tzinfo=timezone.utc))
        before = sorted((e.expense_id or 0, e.amount) for e in store.repayments(debt.id))
        status_rows = len(store.statuses(debt.id))

        update_expense_status(session_factory, covered.id, "paid")
        update_expense_status(session_factory, oversized.id, "paid")

        assert before == [(0, 50.0), (covered.id, 100.0)]
        assert sorted((e.expense_id or 0, e.amount) for e in store.repayments(debt.id)) == before
        assert len(store.statuses(debt.id)) == status_rows
        assert store.expense(oversized.id).status == "paid"
        store.assert_ledger_invariant(debt.id)

    def test_overlapping_calls_settle_once(self, session_factory, debt_factory, store, monkeypatch):
        debt = debt_factory(total_amount=1000.0)
        original = debts_service.add_repayment

        def slow_add_repayment(*args, **kwargs):
            time.sleep(0.2)
            return original(*args, **kwargs)

        monkeypatch.setattr(debts_service, "add_repayment", slow_add_repayment)
        barrier = threading.Barrier(2)
        errors: list[Exception] = []

        def pay_off():
            barrier.wait()
            try:
                mark_paid_off(session_factory, debt.id)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=pay_off) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert [e.amount for e in store.repayments(debt.id)] == [1000.0]
        assert store.debt(debt.id).remaining_amount == 0.0

    def test_missed_month_becomes_paid(self, session_factory, debt_factory, expense_factory, store):
        debt = debt_factory(total_amount=400.0, start_date=date(2025, 1, 1))
        expense_factory(debt.id, amount=50.0, expense_date=date(2025, 6, 3), status="missed")

        mark_paid_off(session_factory, debt.id, now=datetime(2025, 6, 20, tzinfo=timezone.utc))

        assert [(s.month, s.status) for s in store.statuses(debt.id)] == [("2025-06", "paid")]

    def test_unknown_debt(self, session_factory):
        with pytest.raises(NotFoundError):
            mark_paid_off(session_factory, 99)


class TestDeleteDebt:
    def test_removes_everything_tied_to_the_debt(
        self, session_factory, debt_factory, expense_factory, store
    ):
        debt = debt_factory(total_amount=1000.0, start_date=date(2025, 1, 1))
        other = debt_factory(creditor="Other")
        for month in (2, 3, 4):
            record_repayment(session_factory, debt.id, 50.0, date(2025, month, 1))
        expenses = [
            expense_factory(debt.id, amount=25.0, expense_date=date(2025, 5, 1)),
            expense_factory(debt.id, amount=25.0, expense_date=date(2025, 6, 1)),
        ]
        kept = expense_factory(other.id, amount=10.0)

        removed = delete_debt(session_factory, debt.id)

        assert removed == {"expenses": 2, "repayments": 3, "payment_statuses": 0, "debts": 1}
        with pytest.raises(NotFoundError):
            get_debt(session_factory, debt.id)
        assert store.repayments(debt.id) == []
        assert store.statuses(debt.id) == []
        assert all(store.expense(e.id) is None for e in expenses)
        assert store.expense(kept.id) is not None
        assert get_debt(session_factory, other.id).creditor == "Other"

    def test_paid_expense_and_history_removed(
        self, session_factory, debt_factory, expense_factory, store
    ):
        debt = debt_factory(total_amount=1000.0, start_date=date(2025, 1, 1))
        expense_factory(debt.id, amount=100.0, expense_date=date(2025, 2, 1), status="paid")
        expense_factory(debt.id, amount=100.0, expense_date=date(2025, 3, 1), status="missed")

        removed = delete_debt(session_factory, debt.id)

        assert removed["expenses"] == 2
        assert removed["repayments"] == 1
        assert removed["payment_statuses"] == 2
        assert store.repayments() == []
        assert store.statuses() == []

    def test_unknown_debt(self, session_factory):
        with pytest.raises(NotFoundError):
            delete_debt(session_factory, 1234)


def test_local_now_is_timezone_aware():
    assert local_now().tzinfo is not None

    naive = datetime(2025, 6, 15, 9, 30)
    converted = local_now(naive)
    assert converted.tzinfo is not None
    assert converted.replace(tzinfo=None) == naive

    aware = datetime(2025, 6, 15, 9, 30, tzinfo=timezone.utc)
    assert local_now(aware) is aware
