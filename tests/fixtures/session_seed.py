"""Session history seeding fixtures.

Builds saved session records directly, bypassing the engine, for stats and
dashboard tests.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.pattern import Pattern, get_preset
from breath_flow_server.models.session_record import SessionRecord


def make_record(
    user_id: str,
    *,
    ended_at: datetime | None = None,
    elapsed_seconds: int = 300,
    completed: bool = True,
    early_exit: bool = False,
    stats_applied: bool = False,
    pattern: Pattern | None = None,
) -> SessionRecord:
    """Build an unsaved session record ending at ``ended_at``."""
    pattern = pattern or get_preset("default")
    ended_at = ended_at or datetime.now(UTC)
    return SessionRecord(
        user_id=user_id,
        pattern_name=pattern.name,
        inhale_seconds=pattern.inhale_seconds,
        hold_seconds=pattern.hold_seconds,
        exhale_seconds=pattern.exhale_seconds,
        hold_out_seconds=pattern.hold_out_seconds,
        target_seconds=max(elapsed_seconds, 1),
        elapsed_seconds=elapsed_seconds,
        completed=completed,
        early_exit=early_exit,
        stats_applied=stats_applied,
        started_at=ended_at - timedelta(seconds=elapsed_seconds),
        ended_at=ended_at,
        completed_at=ended_at if completed else None,
    )


async def seed_daily_sessions(
    session: AsyncSession,
    user_id: str,
    days: int,
    *,
    now: datetime | None = None,
    elapsed_seconds: int = 300,
    pattern: Pattern | None = None,
) -> list[SessionRecord]:
    """One completed session per day for the last ``days`` days (today included)."""
    now = now or datetime.now(UTC)
    records = [
        make_record(
            user_id,
            ended_at=now - timedelta(days=offset),
            elapsed_seconds=elapsed_seconds,
            stats_applied=True,
            pattern=pattern,
        )
        for offset in range(days)
    ]
    session.add_all(records)
    await session.commit()
    return records
