"""Command-line entry point for DebtWise."""

from __future__ import annotations

from datetime import date, datetime

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .exceptions import DebtWiseError
from .logging_config import setup_logging
from .models.debt import Frequency, PeriodUnit
from .models.expense import ExpenseStatus
from .models.income import Income
from .services import amortization, debts, expense_link, ledger, penalties

DATE = click.DateTime(formats=["%Y-%m-%d"])


def _day(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


def _ctx() -> AppContext:
    return click.get_current_context().find_root().obj


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track debts, repayments and missed-payment penalties."""

    config = BaseConfig()
    setup_logging(config)
    ctx.obj = create_app_context(config)
    ctx.call_on_close(ctx.obj.dispose)


@cli.command("add-debt")
@click.option("--creditor", required=True)
@click.option("--amount", type=float, required=True, help="Principal borrowed")
@click.option("--rate", type=float, default=0.0, show_default=True, help="Annual interest %")
@click.option("--start", type=DATE, default=None, help="Start date (default: today)")
@click.option("--end", type=DATE, default=None, help="Expected end date")
@click.option("--period", type=int, default=None, help="Repayment period length")
@click.option("--unit", type=click.Choice([u.value for u in PeriodUnit]), default=None)
@click.option(
    "--frequency",
    type=click.Choice([f.value for f in Frequency]),
    default=Frequency.MONTHLY.value,
    show_default=True,
)
@click.option("--currency", default=None)
@click.option("--notes", default=None)
def add_debt(creditor, amount, rate, start, end, period, unit, frequency, currency, notes) -> None:
    """Register a new debt."""

    ctx = _ctx()
    data = debts.DebtInput(
        creditor=creditor,
        total_amount=amount,
        interest_rate=rate,
        start_date=_day(start) or date.today(),
        expected_end_date=_day(end),
        repayment_period=period,
        period_unit=unit,
        frequency=frequency,
        currency=currency or ctx.config.DEFAULT_CURRENCY,
        notes=notes,
    )
    try:
        debt_id = debts.create_debt(ctx.session_factory, data)
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created debt {debt_id}")


@cli.command("list")
@click.option("--active", is_flag=True, default=False, help="Only debts with a balance left")
def list_debts(active) -> None:
    """List debts with their outstanding balances."""

    repo = _ctx().debt_repo
    rows = repo.list_active() if active else repo.list_all()
    if not rows:
        click.echo("No debts recorded.")
        return
    for debt in rows:
        click.echo(
            f"{debt.id:>4}  {debt.creditor:<24} {debt.currency} "
            f"{debt.remaining_amount:>12,.2f} / {debt.total_amount:,.2f}  "
            f"{debt.paid_ratio:>4.0%} paid  "
            f"{debt.interest_rate:.2f}%  due {debt.expected_end_date.isoformat()}"
        )
    click.echo(f"Total outstanding: {repo.get_total_outstanding():,.2f}")


@cli.command("repay")
@click.argument("debt_id", type=int)
@click.option("--amount", type=float, required=True)
@click.option("--date", "paid_on", type=DATE, default=None)
@click.option("--notes", default=None)
def repay(debt_id, amount, paid_on, notes) -> None:
    """Record a manual repayment against a debt."""

    try:
        ledger.record_repayment(
            _ctx().session_factory, debt_id, amount, _day(paid_on) or date.today(), notes=notes
        )
        debt = debts.get_debt(_ctx().session_factory, debt_id)
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Remaining on debt {debt_id}: {debt.remaining_amount:,.2f}")


@cli.command("pay-off")
@click.argument("debt_id", type=int)
def pay_off(debt_id) -> None:
    """Settle a debt in full."""

    try:
        debts.mark_paid_off(_ctx().session_factory, debt_id)
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Debt {debt_id} marked as paid off")


@cli.command("delete")
@click.argument("debt_id", type=int)
@click.confirmation_option(prompt="Delete this debt and its repayment history?")
def delete(debt_id) -> None:
    """Delete a debt with its linked expenses and history."""

    try:
        removed = debts.delete_debt(_ctx().session_factory, debt_id)
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        f"Deleted debt {debt_id} ({removed['repayments']} repayments, "
        f"{removed['expenses']} expenses)"
    )


@cli.command("add-expense")
@click.argument("debt_id", type=int)
@click.option("--amount", type=float, required=True)
@click.option("--date", "expense_date", type=DATE, default=None)
@click.option("--due-date", type=DATE, default=None)
@click.option("--name", default="Debt repayment", show_default=True)
def add_expense(debt_id, amount, expense_date, due_date, name) -> None:
    """Record a pending expense linked to a debt."""

    try:
        expense = expense_link.create_linked_expense(
            _ctx().session_factory,
            debt_id,
            amount,
            _day(expense_date) or date.today(),
            due_date=_day(due_date),
            name=name,
        )
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created expense {expense.id}")


@cli.command("expenses")
@click.argument("debt_id", type=int)
@click.option("--status", type=click.Choice([s.value for s in ExpenseStatus]), default=None)
def expenses(debt_id, status) -> None:
    """List expenses linked to a debt."""

    rows = _ctx().expense_repo.list_for_debt(debt_id, status=status)
    if not rows:
        click.echo("No linked expenses.")
        return
    for expense in rows:
        click.echo(
            f"{expense.id:>4}  {expense.effective_date.isoformat()}  "
            f"{expense.amount:>10,.2f}  {expense.status}"
        )


@cli.command("expense-status")
@click.argument("expense_id", type=int)
@click.argument("status", type=click.Choice([s.value for s in ExpenseStatus]))
def expense_status(expense_id, status) -> None:
    """Change a debt-linked expense's status."""

    try:
        expense_link.update_expense_status(_ctx().session_factory, expense_id, status)
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Expense {expense_id} is now {status}")


@cli.command("schedule")
@click.argument("debt_id", type=int)
@click.option("--as-of", type=DATE, default=None, help="Re-amortize from this date")
@click.option("--full", is_flag=True, default=False, help="Print every projected payment")
def schedule(debt_id, as_of, full) -> None:
    """Show the amortized payment plan for a debt."""

    try:
        debt = debts.get_debt(_ctx().session_factory, debt_id)
        plan = amortization.schedule_for_debt(debt, as_of=_day(as_of))
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        f"{plan.total_payments} x {debt.currency} {plan.payment_amount:,.2f}, "
        f"next due {plan.next_payment_date.isoformat()}"
    )
    if full:
        for row in amortization.generate_payment_schedule(debt, as_of=_day(as_of)):
            click.echo(
                f"{row.due_date.isoformat()}  {row.payment:>12,.2f}  "
                f"principal {row.principal:,.2f}  interest {row.interest:,.2f}  "
                f"balance {row.remaining_balance:,.2f}"
            )


@cli.command("penalties")
@click.argument("debt_id", type=int)
def assess(debt_id) -> None:
    """Re-assess escalated penalty rates for a debt's missed months."""

    try:
        rows = penalties.assess_penalties(_ctx().session_factory, debt_id)
    except DebtWiseError as exc:
        raise click.ClickException(str(exc)) from exc
    if not rows:
        click.echo("No payment history.")
    for row in rows:
        click.echo(f"{row.month}  {row.status:<6}  {row.penalty_rate:.2f}%")


@cli.command("add-income")
@click.option("--amount", type=float, required=True)
@click.option(
    "--frequency",
    type=click.Choice(["weekly", "biweekly", "monthly", "yearly", "one-time"]),
    default="monthly",
    show_default=True,
)
@click.option("--category", default="Salary", show_default=True)
def add_income(amount, frequency, category) -> None:
    """Record an income source used for the debt-to-income ratio."""

    if amount <= 0:
        raise click.ClickException("Income amount must be positive")
    ctx = _ctx()
    ctx.income_repo.add(
        Income(
            amount=amount,
            frequency=frequency,
            category=category,
            currency=ctx.config.DEFAULT_CURRENCY,
            date=date.today(),
        )
    )
    click.echo(f"Monthly income is now {ctx.income_repo.monthly_total():,.2f}")


@cli.command("summary")
def summary() -> None:
    """Print the debt summary."""

    result = _ctx().summary_service.refresh()
    click.echo(f"Total outstanding: {result.total_outstanding:,.2f}")
    click.echo(f"Active debts: {result.active_debts}")
    click.echo(f"Monthly repayments: {result.monthly_repayment_total:,.2f}")
    click.echo(f"Debt-to-income: {result.debt_to_income_ratio:.1f}%")
    if result.highest_interest_debt is not None:
        debt = result.highest_interest_debt
        click.echo(f"Highest interest: {debt.creditor} ({debt.interest_rate:.2f}%)")
    if result.upcoming_repayment is not None:
        upcoming = result.upcoming_repayment
        click.echo(
            f"Next repayment: {upcoming.debt.creditor} {upcoming.amount:,.2f} "
            f"on {upcoming.due_date.isoformat()}"
        )
    click.echo(f"Missed payments: {result.missed_payments}")
    click.echo(f"Penalties accrued: {result.total_penalties:,.2f}")
    if result.stale:
        click.echo("(showing last known summary)")


def main() -> None:  # pragma: no cover - console script
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
