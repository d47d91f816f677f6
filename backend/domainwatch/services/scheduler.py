"""Scheduler service - periodic rule checks and housekeeping.

Jobs:
- run_checks: every tick, checks the enabled rules whose checkInterval
  (hours) has elapsed since their last check
- sweep_rate_limiter: evicts idle rate-limit records
- cleanup_history: hourly, drops history and resolved alerts past retention
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .alert_engine import AlertEngine
from .monitor import CheckRunner
from .rate_limiter import RateLimiter
from .time_series import TimeSeriesStore

logger = logging.getLogger(__name__)

SCHEDULER_TICK_SECONDS = 60
RATE_LIMIT_SWEEP_SECONDS = 300
HISTORY_RETENTION_DAYS = 90


class SchedulerService:
    """Service for scheduling due checks and background cleanup."""

    def __init__(
        self,
        runner: CheckRunner,
        rate_limiter: RateLimiter,
        history: TimeSeriesStore,
        alerts: AlertEngine,
        tick_seconds: int = SCHEDULER_TICK_SECONDS,
        sweep_seconds: int = RATE_LIMIT_SWEEP_SECONDS,
        retention_days: int = HISTORY_RETENTION_DAYS,
    ):
        self.runner = runner
        self.rate_limiter = rate_limiter
        self.history = history
        self.alerts = alerts
        self.tick_seconds = tick_seconds
        self.sweep_seconds = sweep_seconds
        self.retention_days = retention_days
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self._run_checks,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=self.tick_seconds,
        )

        # Independent of in-flight checks
        self.scheduler.add_job(
            self._sweep_rate_limiter,
            trigger=IntervalTrigger(seconds=self.sweep_seconds),
            id="sweep_rate_limiter",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.add_job(
            self._cleanup_history,
            trigger=IntervalTrigger(hours=1),
            id="cleanup_history",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={self.tick_seconds}s, max_concurrent={self.runner.max_concurrent})")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def _run_checks(self):
        """Run checks for rules that are due."""
        try:
            outcomes = await self.runner.check_due()
            failed = [o for o in outcomes if o.errors]
            if outcomes:
                logger.info(f"Scheduled run checked {len(outcomes)} rule(s), {len(failed)} with errors")
        except Exception as e:
            logger.error(f"Error running checks: {e}")

    async def _sweep_rate_limiter(self):
        try:
            self.rate_limiter.sweep()
        except Exception as e:
            logger.error(f"Error sweeping rate limiter: {e}")

    async def _cleanup_history(self):
        """Delete history entries and resolved alerts older than the retention window."""
        try:
            removed = self.history.cleanup(self.retention_days)
            pruned = self.alerts.prune_resolved(self.retention_days)
            if removed or pruned:
                logger.info(f"Retention cleanup removed {removed} entries and {pruned} resolved alerts")
        except Exception as e:
            logger.error(f"Error cleaning up history: {e}")
