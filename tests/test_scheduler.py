"""Tests for the maintenance scheduler."""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.pattern import get_preset
from breath_flow_server.core.config import SessionClock, settings
from breath_flow_server.models.session_record import SessionRecord
from breath_flow_server.services.reminders import ReminderNotifier
from breath_flow_server.services.scheduler import MaintenanceScheduler
from breath_flow_server.services.sessions import SessionManager
from breath_flow_server.services.stats import StatsAggregator
from tests.fixtures import make_record

USER_ID = "test-user-uuid-1"


@pytest.fixture
def manager() -> SessionManager:
    return SessionManager(max_target_seconds=600)


class TestJobs:
    """Tests for job bodies, run directly."""

    async def test_tick_finalizes_ended_sessions(
        self, session_factory, async_session: AsyncSession, test_user, manager
    ):
        scheduler = MaintenanceScheduler(session_factory, manager=manager)
        active = manager.start_session(USER_ID, get_preset("default"), 10)

        for _ in range(10):
            await scheduler.run_tick()

        assert active.is_finished
        result = await async_session.execute(select(func.count()).select_from(SessionRecord))
        assert result.scalar_one() == 1
        assert scheduler.last_runs["session_tick"]["ended"] == 1

    async def test_idle_tick_records_nothing(self, session_factory, manager):
        scheduler = MaintenanceScheduler(session_factory, manager=manager)

        await scheduler.run_tick()

        assert "session_tick" not in scheduler.last_runs

    async def test_session_expiry_saves_idle_sessions(
        self, session_factory, async_session: AsyncSession, test_user
    ):
        manager = SessionManager(max_target_seconds=600, idle_timeout=timedelta(minutes=30))
        scheduler = MaintenanceScheduler(session_factory, manager=manager)
        active = manager.start_session(USER_ID, get_preset("default"), 60)
        manager.tick(active.handle, USER_ID, count=15)
        manager.pause(active.handle, USER_ID)
        active.touch(active.last_activity_at - timedelta(hours=1))

        await scheduler.run_session_expiry()

        assert active.is_finished
        assert scheduler.last_runs["session_expiry"]["expired"] == 1
        assert scheduler.last_runs["session_expiry"]["failed"] == 0
        result = await async_session.execute(select(SessionRecord))
        record = result.scalar_one()
        assert record.completed is False
        assert record.elapsed_seconds == 15

    async def test_reconcile_job(self, session_factory, async_session: AsyncSession, test_user):
        async_session.add(make_record(USER_ID))
        await async_session.commit()
        scheduler = MaintenanceScheduler(session_factory, manager=SessionManager())

        await scheduler.run_reconcile()

        assert scheduler.last_runs["stats_reconcile"] == {
            "at": scheduler.last_runs["stats_reconcile"]["at"],
            "applied": 1,
        }

    async def test_streak_decay_job(
        self, session_factory, async_session: AsyncSession, test_user
    ):
        test_user.streak_days = 2
        test_user.last_session_date = date.today() - timedelta(days=5)
        await async_session.commit()
        scheduler = MaintenanceScheduler(session_factory, manager=SessionManager())

        await scheduler.run_streak_decay()

        assert scheduler.last_runs["streak_decay"]["reset"] == 1
        stats, _ = await StatsAggregator(async_session).get_user_stats(USER_ID)
        assert stats.streak_days == 0

    async def test_reminder_job_failure_is_recorded(self, manager):
        def broken_factory():
            raise RuntimeError("no database")

        scheduler = MaintenanceScheduler(broken_factory, manager=manager, notifier=ReminderNotifier())

        await scheduler.run_reminders()

        assert scheduler.last_runs["reminders"]["error"] == "no database"


class TestLifecycle:
    """Tests for starting and stopping APScheduler."""

    async def test_disabled_scheduler_does_not_start(self, monkeypatch, session_factory, manager):
        monkeypatch.setattr(settings, "scheduler_enabled", False)
        scheduler = MaintenanceScheduler(session_factory, manager=manager)

        await scheduler.start()

        assert scheduler.is_running is False
        assert scheduler.get_status()["jobs"] == {}

    async def test_server_clock_jobs(self, monkeypatch, session_factory, manager):
        monkeypatch.setattr(settings, "scheduler_enabled", True)
        monkeypatch.setattr(settings, "session_clock", SessionClock.SERVER)
        scheduler = MaintenanceScheduler(session_factory, manager=manager)

        await scheduler.start()
        try:
            status = scheduler.get_status()
            assert status["is_running"] is True
            assert set(status["jobs"]) == {
                "session_tick",
                "session_expiry",
                "reminders",
                "stats_reconcile",
                "streak_decay",
            }
            assert status["jobs"]["streak_decay"]["next_run_at"] is not None
        finally:
            await scheduler.stop()

        assert scheduler.is_running is False

    async def test_client_clock_skips_tick_job(self, monkeypatch, session_factory, manager):
        monkeypatch.setattr(settings, "scheduler_enabled", True)
        monkeypatch.setattr(settings, "session_clock", SessionClock.CLIENT)
        monkeypatch.setattr(settings, "reminders_enabled", False)
        scheduler = MaintenanceScheduler(session_factory, manager=manager)

        await scheduler.start()
        try:
            assert set(scheduler.get_status()["jobs"]) == {
                "session_expiry",
                "stats_reconcile",
                "streak_decay",
            }
        finally:
            await scheduler.stop()
