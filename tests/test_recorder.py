"""Tests for the session recorder."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.engine import PhaseEngine
from breath_flow_server.breathing.pattern import get_preset
from breath_flow_server.errors import InvalidTransition, PersistenceFailure
from breath_flow_server.models.session_record import SessionRecord
from breath_flow_server.services.recorder import SessionRecorder

FIXED_NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


def db_down() -> OperationalError:
    return OperationalError("INSERT INTO session_records", {}, Exception("database is down"))


def start(user_id: str, target: int, **kwargs) -> tuple[PhaseEngine, SessionRecorder]:
    engine = PhaseEngine(get_preset("default"), target)
    recorder = SessionRecorder(user_id, engine, clock=lambda: FIXED_NOW, **kwargs)
    engine.start()
    return engine, recorder


def advance(engine: PhaseEngine, seconds: int) -> None:
    for _ in range(seconds):
        engine.tick()


async def count_records(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(SessionRecord))
    return result.scalar_one()


class TestDraftTracking:
    """Tests for the in-memory record."""

    def test_start_opens_incomplete_draft(self):
        _, recorder = start("user-1", 60)

        assert recorder.draft is not None
        assert recorder.draft.completed is False
        assert recorder.draft.elapsed_seconds == 0
        assert recorder.draft.started_at == FIXED_NOW

    def test_ticks_update_elapsed(self):
        engine, recorder = start("user-1", 60)

        advance(engine, 12)

        assert recorder.draft.elapsed_seconds == 12
        assert recorder.is_finalized is False

    def test_completion_finalizes_completed(self):
        engine, recorder = start("user-1", 10)

        advance(engine, 10)

        assert recorder.is_finalized
        assert recorder.draft.completed is True
        assert recorder.draft.completed_at == FIXED_NOW

    def test_abandon_is_not_credited(self):
        engine, recorder = start("user-1", 60)
        advance(engine, 20)

        engine.stop(early_exit=True)

        assert recorder.draft.completed is False
        assert recorder.draft.early_exit is True
        assert recorder.draft.completed_at is None

    def test_finish_early_is_credited(self):
        engine, recorder = start("user-1", 60)
        advance(engine, 20)

        engine.stop(early_exit=False)

        assert recorder.draft.completed is True
        assert recorder.draft.elapsed_seconds == 20

    def test_reset_clears_draft(self):
        engine, recorder = start("user-1", 10)

        engine.reset()

        assert recorder.draft is None


class TestPersist:
    """Tests for writing the record."""

    async def test_persists_completed_session(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 60)
        advance(engine, 60)

        record = await recorder.persist(async_session)

        assert record is not None
        assert record.completed is True
        assert record.elapsed_seconds == 60
        assert record.stats_applied is False
        assert record.pattern_name == "Default"
        assert await count_records(async_session) == 1

    async def test_persist_is_idempotent(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 10)
        advance(engine, 10)

        first = await recorder.persist(async_session)
        second = await recorder.persist(async_session)

        assert first is second
        assert await count_records(async_session) == 1

    async def test_short_session_discarded(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 60)
        advance(engine, 3)
        engine.stop(early_exit=False)

        record = await recorder.persist(async_session)

        assert record is None
        assert recorder.discarded is True
        assert await count_records(async_session) == 0

    async def test_abandoned_session_kept_in_history(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 60)
        advance(engine, 30)
        engine.stop(early_exit=True)

        record = await recorder.persist(async_session)

        assert record is not None
        assert record.completed is False
        assert record.early_exit is True

    async def test_unfinished_session_rejected(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 60)
        advance(engine, 10)

        with pytest.raises(InvalidTransition):
            await recorder.persist(async_session)

    async def test_write_retried_once(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 10)
        advance(engine, 10)

        with patch.object(
            async_session, "commit", AsyncMock(side_effect=[db_down(), None])
        ) as commit:
            record = await recorder.persist(async_session)

        assert commit.await_count == 2
        assert record is not None
        assert record.id == recorder.draft.id

    async def test_failure_surfaces_and_keeps_draft(self, async_session: AsyncSession, test_user):
        engine, recorder = start(test_user.id, 10, retry_attempts=1)
        advance(engine, 10)

        with patch.object(async_session, "commit", AsyncMock(side_effect=db_down())) as commit:
            with pytest.raises(PersistenceFailure) as exc_info:
                await recorder.persist(async_session)

        assert commit.await_count == 2
        assert exc_info.value.status_code == 503
        assert recorder.record is None
        assert recorder.draft.finalized is True
        assert engine.elapsed_seconds == 10

        # Storage is back: the same draft saves
        record = await recorder.persist(async_session)
        assert record.id == recorder.draft.id
        assert await count_records(async_session) == 1
