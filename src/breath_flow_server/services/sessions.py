"""Active breathing session registry.

Holds one phase engine and recorder per active session, in process memory,
keyed by an opaque handle. Each user has at most one unfinished session.

Lifecycle of a handle:

    start_session -> tick / pause / resume ... -> engine terminal
        -> finalize (persist record, then apply stats) -> finished
        -> purged after ``retention`` or when the user starts again

A session nobody has ticked, paused or resumed for ``idle_timeout`` (a
paused session left behind, or a client that stopped ticking) is stopped
as abandoned and handed back for finalizing by ``expire_idle``.

A session whose record failed to persist stays registered with its error
so the client can retry the save; it blocks new sessions for that user
until saved or discarded.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.engine import EngineSnapshot, EngineState, PhaseEngine, StopResult
from breath_flow_server.breathing.pattern import Pattern
from breath_flow_server.core.config import settings
from breath_flow_server.errors import (
    BreathFlowError,
    InvalidSessionRequest,
    PersistenceFailure,
    SessionAlreadyActive,
    SessionNotFound,
)
from breath_flow_server.models.base import generate_uuid, utcnow
from breath_flow_server.models.session_record import SessionRecord
from breath_flow_server.services.recorder import SessionRecorder
from breath_flow_server.services.stats import StatsAggregator, StatsUpdate

logger = structlog.get_logger()


@dataclass
class ActiveSession:
    """One registered session and everything needed to finish it."""

    handle: str
    user_id: str
    engine: PhaseEngine
    recorder: SessionRecorder
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    finished_at: datetime | None = None
    stats_update: StatsUpdate | None = None
    stats_pending: bool = False
    save_error: str | None = None

    @property
    def is_finished(self) -> bool:
        """Record written (or discarded) and no save is pending."""
        return self.finished_at is not None

    @property
    def record(self) -> SessionRecord | None:
        return self.recorder.record

    def touch(self, now: datetime | None = None) -> None:
        self.last_activity_at = now or utcnow()

    def snapshot(self) -> EngineSnapshot:
        return self.engine.snapshot()

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "handle": self.handle,
            "pattern": self.engine.pattern.to_dict(),
            **self.engine.snapshot().to_dict(),
            "finished": self.is_finished,
            "saved": self.record is not None,
            "discarded": self.recorder.discarded,
            "save_error": self.save_error,
        }
        if self.engine.is_terminal:
            result = self.engine.result()
            data["completed"] = result.completed
            data["early_exit"] = result.early_exit
            data["credited"] = self.recorder.draft.completed if self.recorder.draft else False
        if self.stats_update is not None:
            data["stats"] = self.stats_update.stats.to_dict()
            data["new_achievements"] = [a.to_dict() for a in self.stats_update.new_achievements]
        data["stats_pending"] = self.stats_pending
        return data


class SessionManager:
    """In-process registry of breathing sessions."""

    def __init__(
        self,
        *,
        max_target_seconds: int | None = None,
        retention: timedelta = timedelta(minutes=10),
        idle_timeout: timedelta | None = None,
    ) -> None:
        """Initialize session manager.

        Args:
            max_target_seconds: Longest allowed session (defaults to settings)
            retention: How long finished sessions stay readable
            idle_timeout: Inactivity after which an unfinished session is abandoned
                (defaults to settings)
        """
        self.max_target_seconds = max_target_seconds or settings.session_max_target_seconds
        self.retention = retention
        self.idle_timeout = idle_timeout or timedelta(minutes=settings.session_idle_timeout_minutes)
        self._sessions: dict[str, ActiveSession] = {}
        self.logger = logger.bind(service="sessions")

    def __len__(self) -> int:
        return len(self._sessions)

    # -- lookup -----------------------------------------------------------

    def get(self, handle: str, user_id: str) -> ActiveSession:
        """Find a session owned by ``user_id``.

        Raises:
            SessionNotFound: Unknown handle or another user's session
        """
        active = self._sessions.get(handle)
        if active is None or active.user_id != user_id:
            raise SessionNotFound(f"Session '{handle}' not found")
        return active

    def for_user(self, user_id: str) -> list[ActiveSession]:
        return [s for s in self._sessions.values() if s.user_id == user_id]

    # -- commands ---------------------------------------------------------

    def start_session(self, user_id: str, pattern: Pattern, target_seconds: int) -> ActiveSession:
        """Create, register and start a session.

        Raises:
            InvalidSessionRequest: Target outside 1..max_target_seconds
            SessionAlreadyActive: The user has an unfinished or unsaved session
        """
        if not 1 <= target_seconds <= self.max_target_seconds:
            raise InvalidSessionRequest(
                f"target_seconds must be between 1 and {self.max_target_seconds}"
            )

        for existing in self.for_user(user_id):
            if existing.is_finished:
                del self._sessions[existing.handle]
            else:
                raise SessionAlreadyActive(
                    "Finish, save or discard the current session first",
                    handle=existing.handle,
                )

        engine = PhaseEngine(pattern, target_seconds)
        recorder = SessionRecorder(user_id, engine)
        active = ActiveSession(
            handle=generate_uuid(), user_id=user_id, engine=engine, recorder=recorder
        )
        engine.start()
        self._sessions[active.handle] = active

        self.logger.info(
            "Session started",
            handle=active.handle,
            user_id=user_id,
            pattern=pattern.signature,
            target_seconds=target_seconds,
        )
        return active

    def tick(self, handle: str, user_id: str, count: int = 1) -> ActiveSession:
        """Advance a session ``count`` seconds (stops early at a terminal state)."""
        active = self.get(handle, user_id)
        for _ in range(count):
            if active.engine.is_terminal:
                break
            active.engine.tick()
        active.touch()
        return active

    def tick_all(self) -> list[ActiveSession]:
        """Advance every running session one second.

        Returns:
            Sessions that became terminal on this tick and need finalizing
        """
        ended = []
        for active in list(self._sessions.values()):
            if active.engine.state != EngineState.RUNNING:
                continue
            active.engine.tick()
            active.touch()
            if active.engine.is_terminal:
                ended.append(active)
        return ended

    def pause(self, handle: str, user_id: str) -> ActiveSession:
        active = self.get(handle, user_id)
        active.engine.pause()
        active.touch()
        return active

    def resume(self, handle: str, user_id: str) -> ActiveSession:
        active = self.get(handle, user_id)
        active.engine.resume()
        active.touch()
        return active

    def stop_session(self, handle: str, user_id: str, early_exit: bool = True) -> StopResult:
        """Stop a session in any state; idempotent once terminal."""
        active = self.get(handle, user_id)
        result = active.engine.stop(early_exit=early_exit)
        self.logger.info(
            "Session stopped",
            handle=handle,
            user_id=user_id,
            completed=result.completed,
            early_exit=result.early_exit,
            elapsed_seconds=result.elapsed_seconds,
        )
        return result

    def discard(self, handle: str, user_id: str) -> None:
        """Drop a session without saving it (stops it first if needed)."""
        active = self.get(handle, user_id)
        active.engine.stop(early_exit=True)
        del self._sessions[handle]
        self.logger.info("Session discarded", handle=handle, user_id=user_id)

    # -- persistence ------------------------------------------------------

    async def finalize(self, active: ActiveSession, session: AsyncSession) -> ActiveSession:
        """Persist a terminal session, then fold it into the owner's stats.

        Safe to call repeatedly; each step runs at most once.

        Raises:
            PersistenceFailure: Record write failed after retry. The session
                stays registered so the save can be retried.
        """
        async with active.lock:
            if active.is_finished:
                return active

            try:
                record = await active.recorder.persist(session)
            except PersistenceFailure as e:
                active.save_error = e.message
                self.logger.error(
                    "Session save failed", handle=active.handle, user_id=active.user_id, **e.details
                )
                raise
            active.save_error = None

            if record is not None and record.completed:
                try:
                    active.stats_update = await StatsAggregator(session).apply_stats(
                        active.user_id, record
                    )
                except (BreathFlowError, SQLAlchemyError) as e:
                    # Record is safe; reconciliation applies the stats later
                    active.stats_pending = True
                    self.logger.warning(
                        "Stats update deferred",
                        handle=active.handle,
                        user_id=active.user_id,
                        record_id=record.id,
                        error=str(e),
                    )

            active.finished_at = utcnow()
            return active

    async def finalize_if_terminal(self, active: ActiveSession, session: AsyncSession) -> ActiveSession:
        if active.engine.is_terminal:
            await self.finalize(active, session)
        return active

    def purge_finished(self, now: datetime | None = None) -> int:
        """Forget finished sessions older than the retention window."""
        now = now or utcnow()
        expired = [
            handle
            for handle, active in self._sessions.items()
            if active.finished_at is not None and now - active.finished_at > self.retention
        ]
        for handle in expired:
            del self._sessions[handle]
        return len(expired)

    def expire_idle(self, now: datetime | None = None) -> list[ActiveSession]:
        """Stop unfinished sessions left untouched for longer than ``idle_timeout``.

        Running or paused sessions are stopped as abandoned. Sessions that are
        already terminal but still unsaved are returned too, so their save is
        retried at most once per idle window.

        Returns:
            Sessions that need finalizing
        """
        now = now or utcnow()
        expired = []
        for active in list(self._sessions.values()):
            if active.is_finished or now - active.last_activity_at <= self.idle_timeout:
                continue
            if not active.engine.is_terminal:
                result = active.engine.stop(early_exit=True)
                self.logger.info(
                    "Idle session stopped",
                    handle=active.handle,
                    user_id=active.user_id,
                    elapsed_seconds=result.elapsed_seconds,
                    idle_since=active.last_activity_at.isoformat(),
                )
            active.touch(now)
            expired.append(active)
        return expired


# Global session manager shared by the API and the scheduler
_manager: SessionManager | None = None


def get_session_manager() -> SessionManager:
    """Get (creating on first use) the process-wide session manager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager


def set_session_manager(manager: SessionManager | None) -> None:
    """Replace the process-wide session manager."""
    global _manager
    _manager = manager
