"""Session recorder: turns engine events into a persisted session record."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.engine import (
    EngineEvent,
    PhaseEngine,
    SessionFinished,
    SessionReset,
    SessionStarted,
    SessionTicked,
)
from breath_flow_server.breathing.pattern import Pattern
from breath_flow_server.core.config import settings
from breath_flow_server.errors import InvalidTransition, PersistenceFailure
from breath_flow_server.models.base import generate_uuid, utcnow
from breath_flow_server.models.session_record import SessionRecord

logger = structlog.get_logger()


@dataclass
class SessionDraft:
    """In-memory session record, mutated only by its recorder."""

    user_id: str
    pattern: Pattern
    target_seconds: int
    started_at: datetime
    id: str = field(default_factory=generate_uuid)
    elapsed_seconds: int = 0
    completed: bool = False
    early_exit: bool = False
    finalized: bool = False
    ended_at: datetime | None = None
    completed_at: datetime | None = None

    def to_model(self) -> SessionRecord:
        """Build the row to insert."""
        return SessionRecord(
            id=self.id,
            user_id=self.user_id,
            pattern_name=self.pattern.name,
            inhale_seconds=self.pattern.inhale_seconds,
            hold_seconds=self.pattern.hold_seconds,
            exhale_seconds=self.pattern.exhale_seconds,
            hold_out_seconds=self.pattern.hold_out_seconds,
            target_seconds=self.target_seconds,
            elapsed_seconds=self.elapsed_seconds,
            completed=self.completed,
            early_exit=self.early_exit,
            stats_applied=False,
            started_at=self.started_at,
            ended_at=self.ended_at or utcnow(),
            completed_at=self.completed_at,
        )


class SessionRecorder:
    """Follows one engine and persists its session when it ends.

    Credit policy on the terminal transition:
    - Target reached: completed
    - Stopped on purpose (``early_exit=False``): completed with the time
      practiced so far
    - Abandoned (``early_exit=True``): kept in history, not completed

    Sessions shorter than ``min_seconds`` are discarded instead of
    persisted, whatever their outcome.
    """

    def __init__(
        self,
        user_id: str,
        engine: PhaseEngine,
        *,
        min_seconds: int | None = None,
        retry_attempts: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Attach a recorder to an engine.

        Args:
            user_id: Owner of the session
            engine: Engine to follow; attach before ``start``
            min_seconds: Discard threshold (defaults to settings)
            retry_attempts: Extra write attempts after a failure (defaults to settings)
            clock: Source of timestamps
        """
        self.user_id = user_id
        self.engine = engine
        self.min_seconds = settings.session_min_seconds if min_seconds is None else min_seconds
        self.retry_attempts = (
            settings.persistence_retry_attempts if retry_attempts is None else retry_attempts
        )
        self._clock = clock
        self.draft: SessionDraft | None = None
        self.record: SessionRecord | None = None
        self.discarded = False
        self.logger = logger.bind(service="recorder", user_id=user_id)
        self.detach = engine.subscribe(self._on_event)

    def _on_event(self, event: EngineEvent) -> None:
        if isinstance(event, SessionStarted):
            self.draft = SessionDraft(
                user_id=self.user_id,
                pattern=self.engine.pattern,
                target_seconds=event.target_seconds,
                started_at=self._clock(),
            )
            self.record = None
            self.discarded = False
        elif isinstance(event, SessionTicked):
            if self.draft is not None:
                self.draft.elapsed_seconds = event.elapsed_seconds
        elif isinstance(event, SessionFinished):
            if self.draft is not None:
                self._finalize(event)
        elif isinstance(event, SessionReset):
            self.draft = None
            self.record = None
            self.discarded = False

    def _finalize(self, event: SessionFinished) -> None:
        assert self.draft is not None
        now = self._clock()
        credited = event.completed or not event.early_exit
        self.draft.elapsed_seconds = event.elapsed_seconds
        self.draft.early_exit = event.early_exit
        self.draft.completed = credited
        self.draft.completed_at = now if credited else None
        self.draft.ended_at = now
        self.draft.finalized = True

    @property
    def is_finalized(self) -> bool:
        return self.draft is not None and self.draft.finalized

    @property
    def should_persist(self) -> bool:
        """Finalized and long enough to keep."""
        return self.is_finalized and self.draft.elapsed_seconds >= self.min_seconds  # type: ignore[union-attr]

    async def persist(self, session: AsyncSession) -> SessionRecord | None:
        """Write the finalized record.

        Idempotent: a record already written is returned again without a
        second insert.

        Args:
            session: Database session; committed on success

        Returns:
            The persisted record, or None if the session was discarded

        Raises:
            InvalidTransition: If the session has not finished
            PersistenceFailure: If every write attempt failed; the draft is
                kept so the caller can retry later
        """
        if self.record is not None:
            return self.record
        if self.draft is None or not self.draft.finalized:
            raise InvalidTransition("Session has not finished yet")

        if not self.should_persist:
            self.discarded = True
            self.logger.info(
                "Discarding short session",
                session_id=self.draft.id,
                elapsed_seconds=self.draft.elapsed_seconds,
                min_seconds=self.min_seconds,
            )
            return None

        attempts = 1 + self.retry_attempts
        last_error: SQLAlchemyError | None = None
        for attempt in range(1, attempts + 1):
            record = self.draft.to_model()
            session.add(record)
            try:
                await session.flush()
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                last_error = e
                self.logger.warning(
                    "Session record write failed",
                    session_id=self.draft.id,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(e),
                )
                continue

            self.record = record
            self.logger.info(
                "Session recorded",
                session_id=record.id,
                elapsed_seconds=record.elapsed_seconds,
                completed=record.completed,
            )
            return record

        raise PersistenceFailure(
            "Could not save session; progress is kept, retry the save",
            session_id=self.draft.id,
            attempts=attempts,
            error=str(last_error),
        )
