"""Read-only debt summary combining balances, schedules and penalties."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..domain.repositories import DebtRepository, IncomeRepository
from ..exceptions import ComputationError
from ..logging_config import get_logger
from ..models.debt import Debt, DebtPaymentStatus
from .amortization import AmortizationSchedule, monthly_equivalent, schedule_for_debt
from .penalties import debt_penalty, missed_count

logger = get_logger("services.summary")


@dataclass(slots=True)
class UpcomingRepayment:
    debt: Debt
    due_date: date
    amount: float


@dataclass(slots=True)
class PaymentHistoryEntry:
    debt_id: int
    creditor: str
    month: str
    status: str
    penalty_rate: float


@dataclass(slots=True)
class DebtSummary:
    """Snapshot handed to the presentation layer."""

    total_outstanding: float = 0.0
    active_debts: int = 0
    highest_interest_debt: Optional[Debt] = None
    upcoming_repayment: Optional[UpcomingRepayment] = None
    debt_to_income_ratio: float = 0.0
    monthly_repayment_total: float = 0.0
    debts: list[Debt] = field(default_factory=list)
    missed_payments: int = 0
    total_penalties: float = 0.0
    payment_history: list[PaymentHistoryEntry] = field(default_factory=list)
    stale: bool = False


def _highest_interest(debts: list[Debt]) -> Optional[Debt]:
    highest: Optional[Debt] = None
    for debt in debts:
        if highest is None or debt.interest_rate > highest.interest_rate:
            highest = debt
    return highest


def build_debt_summary(
    debts: list[Debt],
    statuses: list[DebtPaymentStatus],
    *,
    monthly_income: float,
    today: date | None = None,
) -> DebtSummary:
    """Aggregate debts and their payment history into a :class:`DebtSummary`.

    Schedules are evaluated as of *today* so balances repaid off-schedule are
    spread over the periods left until each debt's end date. A debt whose
    terms cannot be amortized is left out of the payment totals.
    """

    if not debts:
        return DebtSummary()

    today = today or date.today()
    history: dict[int, list[DebtPaymentStatus]] = defaultdict(list)
    for row in statuses:
        history[row.debt_id].append(row)

    active = [debt for debt in debts if debt.remaining_amount > 0]
    schedules: list[tuple[Debt, AmortizationSchedule]] = []
    for debt in active:
        try:
            schedules.append((debt, schedule_for_debt(debt, as_of=today)))
        except ComputationError as exc:
            logger.warning(
                "Skipping debt without a computable schedule",
                extra={"debt_id": debt.id, "reason": str(exc)},
            )

    upcoming: Optional[UpcomingRepayment] = None
    for debt, plan in schedules:
        if upcoming is None or plan.next_payment_date < upcoming.due_date:
            upcoming = UpcomingRepayment(
                debt=debt, due_date=plan.next_payment_date, amount=plan.next_payment_amount
            )

    monthly_total = round(
        sum(monthly_equivalent(plan, debt.frequency) for debt, plan in schedules), 2
    )
    ratio = (monthly_total / monthly_income) * 100 if monthly_income and monthly_income > 0 else 0.0

    creditors = {debt.id: debt.creditor for debt in debts}
    payment_history = sorted(
        (
            PaymentHistoryEntry(
                debt_id=row.debt_id,
                creditor=creditors.get(row.debt_id, ""),
                month=row.month,
                status=row.status,
                penalty_rate=row.penalty_rate,
            )
            for row in statuses
        ),
        key=lambda entry: (entry.month, entry.debt_id),
        reverse=True,
    )

    return DebtSummary(
        total_outstanding=round(sum(debt.remaining_amount for debt in debts), 2),
        active_debts=len(active),
        highest_interest_debt=_highest_interest(debts),
        upcoming_repayment=upcoming,
        debt_to_income_ratio=round(ratio, 2),
        monthly_repayment_total=monthly_total,
        debts=list(debts),
        missed_payments=sum(missed_count(rows) for rows in history.values()),
        total_penalties=round(
            sum(debt_penalty(debt, history.get(debt.id, [])) for debt in debts), 2
        ),
        payment_history=payment_history,
    )


class DebtSummaryService:
    """Builds summaries from the store and remembers the last good one.

    A read that fails with a transient storage error is retried once; if it
    still fails the last known summary is returned flagged ``stale``.
    """

    def __init__(
        self,
        debt_repo: DebtRepository,
        income_repo: IncomeRepository,
        *,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.debt_repo = debt_repo
        self.income_repo = income_repo
        self._clock = clock
        self._last: Optional[DebtSummary] = None

    @property
    def last_summary(self) -> Optional[DebtSummary]:
        return self._last

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.05),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    def _build(self, today: date) -> DebtSummary:
        return build_debt_summary(
            self.debt_repo.list_all(),
            self.debt_repo.list_payment_statuses(),
            monthly_income=self.income_repo.monthly_total(),
            today=today,
        )

    def refresh(self) -> DebtSummary:
        """Rebuild the summary; call after every mutation that affects debts."""

        try:
            summary = self._build(self._clock())
        except SQLAlchemyError:
            logger.warning("Debt summary refresh failed; serving last known summary", exc_info=True)
            if self._last is None:
                return DebtSummary(stale=True)
            return replace(self._last, stale=True)

        self._last = summary
        logger.debug(
            "Debt summary refreshed",
            extra={"active_debts": summary.active_debts, "total_outstanding": summary.total_outstanding},
        )
        return summary


__all__ = [
    "DebtSummary",
    "DebtSummaryService",
    "PaymentHistoryEntry",
    "UpcomingRepayment",
    "build_debt_summary",
]
