"""Background maintenance scheduler using APScheduler.

Jobs:

    session_tick      every ``TICK_INTERVAL_SECONDS`` (server clock only)
                      advances every active session one second and
                      finalizes the ones that ended
    session_expiry    every minute, stops sessions idle longer than
                      ``SESSION_IDLE_TIMEOUT_MINUTES`` and saves them as
                      abandoned, then purges finished sessions
    reminders         every minute, dispatches due reminders
    stats_reconcile   every ``STATS_RECONCILE_INTERVAL_MINUTES``, applies
                      stats for persisted sessions whose update never landed
    streak_decay      nightly at ``STREAK_DECAY_HOUR`` in the stats
                      timezone, zeroes streaks that can no longer continue

A failing job is logged and retried on its next run; it never stops the
scheduler.

Usage:
    # In app startup
    scheduler = MaintenanceScheduler(async_session_maker)
    await scheduler.start()

    # In app shutdown
    await scheduler.stop()
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from breath_flow_server.core.config import settings
from breath_flow_server.errors import PersistenceFailure
from breath_flow_server.services.reminders import ReminderNotifier, ReminderService
from breath_flow_server.services.sessions import ActiveSession, SessionManager, get_session_manager
from breath_flow_server.services.stats import StatsAggregator

if TYPE_CHECKING:
    from apscheduler.job import Job

logger = structlog.get_logger()


class MaintenanceScheduler:
    """Runs session ticks and periodic maintenance in the background.

    Attributes:
        session_factory: Async session factory for database access
        manager: Session registry ticked by the server clock
        scheduler: APScheduler instance
        is_running: Whether scheduler is currently running
        last_runs: Per-job timestamp and outcome of the latest run
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        manager: SessionManager | None = None,
        notifier: ReminderNotifier | None = None,
    ) -> None:
        """Initialize maintenance scheduler.

        Args:
            session_factory: SQLAlchemy async session factory
            manager: Session registry (defaults to the process-wide one)
            notifier: Reminder delivery (defaults to a logging notifier)
        """
        self.session_factory = session_factory
        self.manager = manager if manager is not None else get_session_manager()
        self.notifier = notifier or ReminderNotifier()
        self.scheduler = AsyncIOScheduler(timezone=settings.get_stats_timezone())
        self.is_running = False
        self.last_runs: dict[str, dict[str, object]] = {}
        self._jobs: dict[str, Job] = {}
        self.logger = logger.bind(component="maintenance_scheduler")

    async def start(self) -> None:
        """Register the jobs and start APScheduler."""
        if not settings.scheduler_enabled:
            self.logger.info("Scheduler disabled by configuration")
            return

        if self.is_running:
            self.logger.warning("Scheduler already running")
            return

        tz = settings.get_stats_timezone()
        self.logger.info(
            "Starting maintenance scheduler",
            session_clock=settings.session_clock.value,
            stats_timezone=settings.stats_timezone,
        )

        if settings.is_server_clock():
            self._add_job(
                "session_tick",
                "Tick active breathing sessions",
                self.run_tick,
                IntervalTrigger(seconds=settings.tick_interval_seconds),
            )

        self._add_job(
            "session_expiry",
            "Expire idle breathing sessions",
            self.run_session_expiry,
            IntervalTrigger(minutes=1),
        )

        if settings.reminders_enabled:
            self._add_job(
                "reminders",
                "Dispatch due reminders",
                self.run_reminders,
                CronTrigger(minute="*", timezone=tz),
            )

        self._add_job(
            "stats_reconcile",
            "Apply pending session stats",
            self.run_reconcile,
            IntervalTrigger(minutes=settings.stats_reconcile_interval_minutes),
        )
        self._add_job(
            "streak_decay",
            "Reset lapsed streaks",
            self.run_streak_decay,
            CronTrigger(hour=settings.streak_decay_hour, minute=0, timezone=tz),
        )

        self.scheduler.start()
        self.is_running = True
        self.logger.info("Maintenance scheduler started", jobs=sorted(self._jobs))

    def _add_job(
        self,
        job_id: str,
        name: str,
        func: Callable[[], Awaitable[None]],
        trigger: IntervalTrigger | CronTrigger,
    ) -> None:
        self._jobs[job_id] = self.scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            name=name,
            replace_existing=True,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
        )

    async def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if not self.is_running:
            return

        self.logger.info("Stopping maintenance scheduler")
        self.scheduler.shutdown(wait=True)
        self.is_running = False
        self.logger.info("Maintenance scheduler stopped")

    def _record_run(self, job_id: str, **outcome: object) -> None:
        self.last_runs[job_id] = {"at": datetime.now(UTC).isoformat(), **outcome}

    async def _finalize_all(self, sessions: list[ActiveSession]) -> int:
        """Save each session in its own database session; returns the failure count."""
        failed = 0
        for active in sessions:
            try:
                async with self.session_factory() as session:
                    await self.manager.finalize(active, session)
            except PersistenceFailure:
                # Kept registered with save_error; the client can retry the save
                failed += 1
            except Exception as e:
                failed += 1
                self.logger.exception("Session finalize failed", handle=active.handle, error=str(e))
        return failed

    async def run_tick(self) -> None:
        """Advance every running session and save the ones that ended."""
        ended = self.manager.tick_all()
        failed = await self._finalize_all(ended)
        if ended:
            self._record_run("session_tick", ended=len(ended), failed=failed)

    async def run_session_expiry(self) -> None:
        """Stop and save idle sessions, then forget old finished ones."""
        expired = self.manager.expire_idle()
        failed = await self._finalize_all(expired)
        purged = self.manager.purge_finished()
        self._record_run("session_expiry", expired=len(expired), failed=failed, purged=purged)

    async def run_reminders(self) -> None:
        try:
            async with self.session_factory() as session:
                sent = await ReminderService(session).dispatch_due(self.notifier)
            self._record_run("reminders", sent=sent)
        except Exception as e:
            self.logger.exception("Reminder dispatch failed", error=str(e))
            self._record_run("reminders", error=str(e))

    async def run_reconcile(self) -> None:
        try:
            async with self.session_factory() as session:
                applied = await StatsAggregator(session).reconcile_pending()
            self._record_run("stats_reconcile", applied=applied)
        except Exception as e:
            self.logger.exception("Stats reconciliation failed", error=str(e))
            self._record_run("stats_reconcile", error=str(e))

    async def run_streak_decay(self) -> None:
        try:
            async with self.session_factory() as session:
                reset = await StatsAggregator(session).decay_streaks()
            self._record_run("streak_decay", reset=reset)
        except Exception as e:
            self.logger.exception("Streak decay failed", error=str(e))
            self._record_run("streak_decay", error=str(e))

    def get_status(self) -> dict[str, object]:
        """Get scheduler status for monitoring."""
        jobs = {}
        for job_id, job in self._jobs.items():
            next_run = job.next_run_time if self.is_running else None
            jobs[job_id] = {
                "name": job.name,
                "next_run_at": next_run.isoformat() if next_run else None,
                "last_run": self.last_runs.get(job_id),
            }

        return {
            "enabled": settings.scheduler_enabled,
            "is_running": self.is_running,
            "session_clock": settings.session_clock.value,
            "active_sessions": len(self.manager),
            "jobs": jobs,
        }


# Global scheduler instance (initialized in app startup)
_scheduler: MaintenanceScheduler | None = None


def get_scheduler() -> MaintenanceScheduler | None:
    """Get the global scheduler instance.

    Returns:
        Scheduler instance or None if not initialized
    """
    return _scheduler


def set_scheduler(scheduler: MaintenanceScheduler | None) -> None:
    """Set the global scheduler instance."""
    global _scheduler
    _scheduler = scheduler
