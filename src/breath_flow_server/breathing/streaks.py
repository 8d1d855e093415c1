"""Rolling practice statistics and calendar-day streak rules."""

from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, timedelta, tzinfo


@dataclass(frozen=True)
class UserStats:
    """Cumulative practice counters for one user.

    Invariants: ``longest_streak >= streak_days`` and ``total_minutes``
    never decreases.
    """

    total_sessions: int = 0
    total_minutes: int = 0
    streak_days: int = 0
    longest_streak: int = 0
    last_session_date: date | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "total_sessions": self.total_sessions,
            "total_minutes": self.total_minutes,
            "streak_days": self.streak_days,
            "longest_streak": self.longest_streak,
            "last_session_date": (
                self.last_session_date.isoformat() if self.last_session_date else None
            ),
        }


def next_streak(streak_days: int, last_session_date: date | None, today: date) -> int:
    """Streak length after practicing on ``today``.

    - Already practiced today: unchanged (at least 1)
    - Practiced yesterday: +1
    - Gap of two or more days, or no history: restart at 1

    A session dated before the last recorded day (a late reconciliation)
    leaves the streak as it is, even when it has already decayed to 0.
    """
    if last_session_date is not None and today < last_session_date:
        return streak_days
    if today == last_session_date:
        return max(streak_days, 1)
    if last_session_date == today - timedelta(days=1):
        return streak_days + 1
    return 1


def apply_completed_session(stats: UserStats, elapsed_seconds: int, today: date) -> UserStats:
    """Fold one completed session into the stats.

    Args:
        stats: Stats before the session
        elapsed_seconds: Practiced time; whole minutes are credited
        today: Calendar day of completion in the stats timezone

    Returns:
        New stats snapshot
    """
    streak = next_streak(stats.streak_days, stats.last_session_date, today)
    last_date = stats.last_session_date
    if last_date is None or today > last_date:
        last_date = today

    return UserStats(
        total_sessions=stats.total_sessions + 1,
        total_minutes=stats.total_minutes + max(0, elapsed_seconds) // 60,
        streak_days=streak,
        longest_streak=max(stats.longest_streak, streak),
        last_session_date=last_date,
    )


def decay_streak(stats: UserStats, today: date) -> UserStats:
    """Zero a streak that can no longer continue.

    A streak survives until the end of the day after the last session. Run
    nightly so stored streaks do not outlive a missed day. The longest
    streak is never touched.
    """
    if stats.streak_days == 0 or stats.last_session_date is None:
        return stats
    if today - stats.last_session_date > timedelta(days=1):
        return replace(stats, streak_days=0)
    return stats


def local_date(moment: datetime, tz: tzinfo) -> date:
    """Calendar day of an instant in the stats timezone.

    Naive datetimes are treated as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(tz).date()
