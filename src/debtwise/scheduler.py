"""Background jobs: periodic summary refresh and nightly penalty assessment.

Refreshing here only keeps the displayed summary fresh; mutations still
refresh explicitly once their transaction commits.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .exceptions import DebtWiseError
from .logging_config import get_logger
from .services.penalties import assess_penalties

if TYPE_CHECKING:
    from .context import AppContext

logger = get_logger("scheduler")

SUMMARY_JOB_ID = "summary_refresh"
PENALTY_JOB_ID = "penalty_assessment"
PENALTY_HOUR = 2


class BackgroundScheduler:
    """Owns an APScheduler instance bound to one :class:`AppContext`."""

    def __init__(self, ctx: AppContext):
        self.ctx = ctx
        self.scheduler: Optional[APScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    def _schedule(self, job_id: str, func: Callable, trigger: BaseTrigger, name: str) -> None:
        if self.scheduler is None:
            raise RuntimeError("Scheduler is not running")
        self.scheduler.add_job(
            func=func, trigger=trigger, id=job_id, name=name, replace_existing=True
        )

    def start(self) -> None:
        """Register the built-in jobs and start the worker thread."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = APScheduler()
        minutes = self.ctx.config.SUMMARY_REFRESH_MINUTES
        self._schedule(
            SUMMARY_JOB_ID, self._refresh_summary, IntervalTrigger(minutes=minutes),
            "Debt Summary Refresh",
        )
        self._schedule(
            PENALTY_JOB_ID, self._assess_penalties, CronTrigger(hour=PENALTY_HOUR, minute=0),
            "Nightly Penalty Assessment",
        )
        self.scheduler.start()
        logger.info(
            "Background scheduler started",
            extra={"refresh_minutes": minutes, "penalty_hour": PENALTY_HOUR},
        )

    def stop(self) -> None:
        """Shut down after running jobs finish."""
        if not self.running:
            return
        self.scheduler.shutdown(wait=True)
        self.scheduler = None
        logger.info("Background scheduler stopped")

    def _refresh_summary(self) -> None:
        if self.ctx.summary_service.refresh().stale:
            logger.warning("Periodic refresh served a stale debt summary")

    def _assess_penalties(self) -> None:
        """Re-stamp penalty rates for every debt, then refresh the summary."""
        for debt in self.ctx.debt_repo.list_all():
            try:
                assess_penalties(self.ctx.session_factory, debt.id)
            except DebtWiseError:
                logger.error(
                    "Penalty assessment failed", extra={"debt_id": debt.id}, exc_info=True
                )
        self._refresh_summary()

    def add_job(self, func: Callable, *, job_id: str, minutes: int, name: str | None = None) -> None:
        """Run *func* every *minutes* while the scheduler is running."""
        if not self.running:
            logger.warning("Cannot add job before the scheduler starts", extra={"job_id": job_id})
            return
        self._schedule(job_id, func, IntervalTrigger(minutes=minutes), name or job_id)
        logger.info("Job added", extra={"job_id": job_id, "minutes": minutes})

    def remove_job(self, job_id: str) -> None:
        if self.running:
            self.scheduler.remove_job(job_id)
            logger.info("Job removed", extra={"job_id": job_id})


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> BackgroundScheduler:
    """Build a scheduler for *ctx*, starting it when ``auto_start`` is set."""
    scheduler = BackgroundScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
