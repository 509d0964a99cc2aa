"""Loan amortization: level payments, next due dates and projections."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from ..exceptions import ComputationError
from ..models.debt import Debt, Frequency, PeriodUnit

FrequencyLike = Union[Frequency, str]

# Periods per year used to derive the per-period rate.
PERIODS_PER_YEAR = {
    Frequency.WEEKLY: 52,
    Frequency.MONTHLY: 12,
    Frequency.YEARLY: 1,
}

# Factor converting one period's payment into a monthly equivalent.
MONTHLY_EQUIVALENT = {
    Frequency.WEEKLY: 52 / 12,
    Frequency.MONTHLY: 1.0,
    Frequency.YEARLY: 1 / 12,
    Frequency.ONE_TIME: 0.0,
}


@dataclass(slots=True)
class AmortizationSchedule:
    """Level payment plan for a debt, recomputed on every request."""

    payment_amount: float
    total_payments: int
    next_payment_date: date
    next_payment_amount: float


@dataclass(slots=True)
class PaymentProjection:
    """Represents a single projected payment for a debt."""

    due_date: date
    payment: float
    principal: float
    interest: float
    remaining_balance: float


def _round_currency(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _as_frequency(value: FrequencyLike) -> Frequency:
    try:
        return Frequency(value)
    except ValueError as exc:
        raise ComputationError(f"Unsupported frequency: {value!r}") from exc


def add_months(value: date, months: int) -> date:
    """Shift *value* by whole months, clamping to the last day of the month."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar-month span, ignoring the day of month."""

    return (end.year - start.year) * 12 + (end.month - start.month)


def periods_between(start: date, end: date, frequency: FrequencyLike) -> int:
    """Number of repayment periods of *frequency* between two dates."""

    freq = _as_frequency(frequency)
    if freq is Frequency.MONTHLY:
        return months_between(start, end)
    if freq is Frequency.WEEKLY:
        return (end - start).days // 7
    if freq is Frequency.YEARLY:
        return months_between(start, end) // 12
    return 1 if end > start else 0


def period_rate(interest_rate: float, frequency: FrequencyLike, *, start: date, end: date) -> float:
    """Convert an annual percentage into the rate applied per period.

    A one-time debt has a single period spanning the whole term, so its rate
    is the annual rate pro-rated by the term length in days.
    """

    freq = _as_frequency(frequency)
    annual = interest_rate / 100
    if freq is Frequency.ONE_TIME:
        return annual * max((end - start).days, 0) / 365
    return annual / PERIODS_PER_YEAR[freq]


def level_payment(principal: float, rate: float, periods: int) -> float:
    """Closed-form annuity payment; straight division when the rate is zero."""

    if periods <= 0:
        raise ComputationError(f"Cannot amortize over {periods} periods")
    if rate == 0:
        return principal / periods
    factor = (1 + rate) ** periods
    return principal * (rate * factor) / (factor - 1)


def next_payment_date(anchor: date, frequency: FrequencyLike, expected_end_date: date) -> date:
    """First due date after *anchor* for the given cadence."""

    freq = _as_frequency(frequency)
    if freq is Frequency.MONTHLY:
        return add_months(anchor.replace(day=1), 1)
    if freq is Frequency.WEEKLY:
        return anchor + timedelta(weeks=1)
    if freq is Frequency.YEARLY:
        return add_months(anchor, 12)
    return expected_end_date


def calculate_end_date(start_date: date, period: int, unit: PeriodUnit | str) -> date:
    """Derive an expected end date from a repayment period and unit."""

    if period <= 0:
        raise ComputationError("Repayment period must be positive")
    unit = PeriodUnit(unit)
    if unit is PeriodUnit.WEEKS:
        return start_date + timedelta(weeks=period)
    if unit is PeriodUnit.MONTHS:
        return add_months(start_date, period)
    return add_months(start_date, period * 12)


def calculate_payment_schedule(
    *,
    remaining_amount: float,
    interest_rate: float,
    start_date: date,
    expected_end_date: date,
    frequency: FrequencyLike,
    as_of: date | None = None,
) -> AmortizationSchedule:
    """Return the level payment needed to clear *remaining_amount* by the end date.

    Without ``as_of`` (or with one on or before ``start_date``) the whole term
    is amortized from the start date. A later ``as_of`` re-amortizes the
    current balance over the periods left until ``expected_end_date``; once
    the end date has passed the whole balance falls due in one period.
    """

    freq = _as_frequency(frequency)
    total_periods = periods_between(start_date, expected_end_date, freq)
    if total_periods <= 0:
        raise ComputationError(
            f"Term {start_date.isoformat()}..{expected_end_date.isoformat()} "
            f"spans no {freq.value.lower()} periods"
        )

    anchor = start_date if as_of is None or as_of <= start_date else as_of
    if anchor == start_date:
        periods = total_periods
    else:
        periods = max(periods_between(anchor, expected_end_date, freq), 1)

    rate = period_rate(interest_rate, freq, start=anchor, end=max(expected_end_date, anchor))
    payment = _round_currency(level_payment(remaining_amount, rate, periods))
    return AmortizationSchedule(
        payment_amount=payment,
        total_payments=periods,
        next_payment_date=next_payment_date(anchor, freq, expected_end_date),
        next_payment_amount=payment,
    )


def schedule_for_debt(debt: Debt, *, as_of: date | None = None) -> AmortizationSchedule:
    """Compute the schedule for a stored debt from its current balance."""

    return calculate_payment_schedule(
        remaining_amount=debt.remaining_amount,
        interest_rate=debt.interest_rate,
        start_date=debt.start_date,
        expected_end_date=debt.expected_end_date,
        frequency=debt.frequency,
        as_of=as_of,
    )


def monthly_equivalent(schedule: AmortizationSchedule, frequency: FrequencyLike) -> float:
    """Express a per-period payment as a monthly amount; one-time debts count as 0."""

    return schedule.payment_amount * MONTHLY_EQUIVALENT[_as_frequency(frequency)]


def _advance(due: date, frequency: Frequency) -> date:
    if frequency is Frequency.MONTHLY:
        return add_months(due, 1)
    if frequency is Frequency.WEEKLY:
        return due + timedelta(weeks=1)
    return add_months(due, 12)


def generate_payment_schedule(debt: Debt, *, as_of: date | None = None) -> list[PaymentProjection]:
    """Project every remaining payment until the balance reaches zero.

    The final row absorbs rounding drift so the projection always ends at a
    zero balance.
    """

    if debt.remaining_amount <= 0:
        return []

    freq = _as_frequency(debt.frequency)
    plan = schedule_for_debt(debt, as_of=as_of)
    anchor = debt.start_date if as_of is None or as_of <= debt.start_date else as_of
    rate = period_rate(
        debt.interest_rate, freq, start=anchor, end=max(debt.expected_end_date, anchor)
    )

    balance = debt.remaining_amount
    due = plan.next_payment_date
    rows: list[PaymentProjection] = []
    for index in range(plan.total_payments):
        interest = _round_currency(balance * rate)
        last = index == plan.total_payments - 1
        payment = _round_currency(balance + interest) if last else plan.payment_amount
        principal = _round_currency(payment - interest)
        balance = _round_currency(balance - principal)
        if balance < 0.01:
            balance = 0.0
        rows.append(
            PaymentProjection(
                due_date=due,
                payment=payment,
                principal=principal,
                interest=interest,
                remaining_balance=balance,
            )
        )
        if freq is Frequency.ONE_TIME:
            break
        due = _advance(due, freq)
    return rows


__all__ = [
    "AmortizationSchedule",
    "PaymentProjection",
    "add_months",
    "calculate_end_date",
    "calculate_payment_schedule",
    "generate_payment_schedule",
    "level_payment",
    "monthly_equivalent",
    "months_between",
    "next_payment_date",
    "period_rate",
    "periods_between",
    "schedule_for_debt",
]
