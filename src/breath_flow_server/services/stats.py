"""Stats aggregator: folds completed sessions into user statistics.

A session record is persisted first, in its own transaction. Its stats
update then runs as a separate read-modify-write on the user row, guarded
by the row's version column. This gives the ordering guarantee:

    record persisted  ->  stats applied (record.stats_applied = True)

Stats are never applied for a record that is not in the database. If the
second step fails, the record stays with ``stats_applied=False`` and the
reconciliation job applies it later.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from breath_flow_server.breathing.achievements import evaluate_achievements
from breath_flow_server.breathing.streaks import (
    UserStats,
    apply_completed_session,
    decay_streak,
    local_date,
)
from breath_flow_server.core.config import settings
from breath_flow_server.errors import BreathFlowError, ConcurrentModification, ResourceNotFound
from breath_flow_server.models.achievement import UserAchievement
from breath_flow_server.models.base import utcnow
from breath_flow_server.models.session_record import SessionRecord
from breath_flow_server.models.user import User

logger = structlog.get_logger()


@dataclass
class StatsUpdate:
    """Result of applying one session."""

    stats: UserStats
    new_achievements: list[UserAchievement] = field(default_factory=list)
    applied: bool = True  # False when the record was not eligible or already applied


class StatsAggregator:
    """Applies finalized sessions to user stats and unlocks achievements."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        max_attempts: int | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        """Initialize stats aggregator.

        Args:
            session: Database session
            max_attempts: Read-modify-write attempts on stale reads (defaults to settings)
            tz: Timezone of the calendar-day boundary (defaults to settings)
        """
        self.session = session
        self.max_attempts = max_attempts or settings.stats_max_attempts
        self.tz = tz or settings.get_stats_timezone()
        self.logger = logger.bind(service="stats")

    def today(self) -> date:
        return datetime.now(self.tz).date()

    async def apply_stats(
        self,
        user_id: str,
        record: SessionRecord | str,
        today: date | None = None,
    ) -> StatsUpdate:
        """Fold a persisted session into the owner's stats.

        Only ``completed`` records count. A record already applied is not
        counted twice.

        Args:
            user_id: Owner of the record
            record: Persisted record or its id
            today: Day to credit (defaults to the record's completion day)

        Returns:
            StatsUpdate with the new stats and newly unlocked achievements

        Raises:
            ResourceNotFound: If the user or record does not exist
            ConcurrentModification: If every attempt hit a stale user row
        """
        record_id = record if isinstance(record, str) else record.id

        for attempt in range(1, self.max_attempts + 1):
            try:
                update = await self._apply_once(user_id, record_id, today)
                await self.session.commit()
            except StaleDataError as e:
                await self.session.rollback()
                self.logger.warning(
                    "Stale stats read, retrying",
                    user_id=user_id,
                    record_id=record_id,
                    attempt=attempt,
                    error=str(e),
                )
                continue
            except Exception:
                await self.session.rollback()
                raise

            if update.applied:
                self.logger.info(
                    "Stats applied",
                    user_id=user_id,
                    record_id=record_id,
                    total_sessions=update.stats.total_sessions,
                    streak_days=update.stats.streak_days,
                    new_achievements=[a.key for a in update.new_achievements],
                )
            return update

        raise ConcurrentModification(
            "Stats changed concurrently; giving up after retries",
            user_id=user_id,
            record_id=record_id,
            attempts=self.max_attempts,
        )

    async def _apply_once(self, user_id: str, record_id: str, today: date | None) -> StatsUpdate:
        record = await self._load_record(user_id, record_id)
        user = await self._load_user(user_id)

        if not record.completed or record.stats_applied:
            return StatsUpdate(stats=user.stats, applied=False)

        day = today
        if day is None:
            day = local_date(record.completed_at or record.ended_at, self.tz)

        stats = apply_completed_session(user.stats, record.elapsed_seconds, day)
        user.apply_stats(stats)

        unlocked = await self.unlocked_keys(user_id)
        now = utcnow()
        new_rows = [
            UserAchievement(
                user_id=user_id,
                key=definition.key,
                name=definition.name,
                icon=definition.icon,
                description=definition.description,
                unlocked_at=now,
            )
            for definition in evaluate_achievements(stats, unlocked)
        ]
        self.session.add_all(new_rows)

        record.stats_applied = True
        await self.session.flush()

        return StatsUpdate(stats=stats, new_achievements=new_rows)

    async def _load_user(self, user_id: str) -> User:
        result = await self.session.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise ResourceNotFound(f"User '{user_id}' not found")
        return user

    async def _load_record(self, user_id: str, record_id: str) -> SessionRecord:
        result = await self.session.execute(
            select(SessionRecord)
            .where(SessionRecord.id == record_id, SessionRecord.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise ResourceNotFound(f"Session record '{record_id}' not found")
        return record

    async def unlocked_keys(self, user_id: str) -> set[str]:
        result = await self.session.execute(
            select(UserAchievement.key).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars().all())

    async def get_user_stats(self, user_id: str) -> tuple[UserStats, list[UserAchievement]]:
        """Current stats and unlocked achievements (oldest first).

        Raises:
            ResourceNotFound: If the user does not exist
        """
        user = await self._load_user(user_id)
        result = await self.session.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at, UserAchievement.key)
        )
        return user.stats, list(result.scalars().all())

    async def reconcile_pending(self, limit: int = 100) -> int:
        """Apply stats for completed records whose update never landed.

        Returns:
            Number of records applied
        """
        result = await self.session.execute(
            select(SessionRecord.user_id, SessionRecord.id)
            .where(SessionRecord.completed.is_(True), SessionRecord.stats_applied.is_(False))
            .order_by(SessionRecord.ended_at)
            .limit(limit)
        )
        pending = result.all()

        applied = 0
        for user_id, record_id in pending:
            try:
                update = await self.apply_stats(user_id, record_id)
            except (BreathFlowError, SQLAlchemyError) as e:
                self.logger.error(
                    "Stats reconciliation failed", user_id=user_id, record_id=record_id, error=str(e)
                )
                continue
            if update.applied:
                applied += 1

        if pending:
            self.logger.info("Stats reconciliation complete", pending=len(pending), applied=applied)
        return applied

    async def decay_streaks(self, today: date | None = None) -> int:
        """Zero streaks whose last session is older than yesterday.

        Returns:
            Number of users whose streak was reset
        """
        today = today or self.today()
        cutoff = today - timedelta(days=1)
        result = await self.session.execute(
            select(User.id).where(User.streak_days > 0, User.last_session_date < cutoff)
        )
        user_ids = list(result.scalars().all())

        reset = 0
        for user_id in user_ids:
            try:
                user = await self._load_user(user_id)
                decayed = decay_streak(user.stats, today)
                if decayed != user.stats:
                    user.apply_stats(decayed)
                    await self.session.commit()
                    reset += 1
            except (StaleDataError, ResourceNotFound) as e:
                # User changed or vanished since the scan; tomorrow's run catches up
                await self.session.rollback()
                self.logger.warning("Streak decay skipped", user_id=user_id, error=str(e))

        self.logger.info("Streak decay complete", candidates=len(user_ids), reset=reset)
        return reset
