"""Dashboard service: practice summaries, activity calendar and insights.

All figures are computed from completed session records and the user's
stored stats. Calendar days use the stats timezone, the same boundary the
streak rules use.
"""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.breathing.achievements import next_session_milestone
from breath_flow_server.breathing.streaks import local_date
from breath_flow_server.core.config import settings
from breath_flow_server.errors import ResourceNotFound
from breath_flow_server.models.base import ensure_utc, utcnow
from breath_flow_server.models.session_record import SessionRecord
from breath_flow_server.models.user import User

logger = structlog.get_logger()

MAX_ACTIVITY_DAYS = 365
CONSISTENCY_WINDOW = 7  # Most recent sessions checked for distinct days
CONSISTENCY_MIN_DAYS = 5
TIMING_MIN_SESSIONS = 10
TIMING_WINDOW = 20


def rounded_minutes(seconds: int) -> int:
    """Seconds to the nearest whole minute (halves round up)."""
    return (seconds + 30) // 60


def time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


@dataclass(frozen=True)
class Insight:
    """One personalized message for the dashboard."""

    type: str
    icon: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "icon": self.icon, "message": self.message}


class DashboardService:
    """Read-only views over a user's practice history."""

    def __init__(self, session: AsyncSession, *, tz: ZoneInfo | None = None) -> None:
        """Initialize dashboard service.

        Args:
            session: Database session
            tz: Timezone of the calendar-day boundary (defaults to settings)
        """
        self.session = session
        self.tz = tz or settings.get_stats_timezone()
        self.logger = logger.bind(service="dashboard")

    def _local(self, moment: datetime) -> datetime:
        return ensure_utc(moment).astimezone(self.tz)

    def _day(self, record: SessionRecord) -> date:
        return local_date(record.completed_at or record.ended_at, self.tz)

    async def _get_user(self, user_id: str) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise ResourceNotFound(f"User '{user_id}' not found")
        return user

    async def completed_records(self, user_id: str, since: datetime | None = None) -> list[SessionRecord]:
        """Completed records, most recently completed first."""
        query = select(SessionRecord).where(
            SessionRecord.user_id == user_id,
            SessionRecord.completed.is_(True),
        )
        if since is not None:
            query = query.where(SessionRecord.ended_at >= since)
        result = await self.session.execute(query.order_by(SessionRecord.ended_at.desc()))
        return list(result.scalars().all())

    async def history(self, user_id: str, limit: int = 50, offset: int = 0) -> list[SessionRecord]:
        """Every persisted session of a user, newest first."""
        result = await self.session.execute(
            select(SessionRecord)
            .where(SessionRecord.user_id == user_id)
            .order_by(SessionRecord.started_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def summary(self, user_id: str, now: datetime | None = None) -> dict[str, Any]:
        """Today, this week, last week and all-time figures.

        Weeks are rolling seven-day windows ending today.
        """
        user = await self._get_user(user_id)
        now = now or utcnow()
        today = local_date(now, self.tz)
        week_start = today - timedelta(days=7)
        last_week_start = week_start - timedelta(days=7)

        records = await self.completed_records(user_id)

        def window(start: date, end: date | None = None) -> list[SessionRecord]:
            return [
                r for r in records if self._day(r) >= start and (end is None or self._day(r) < end)
            ]

        today_records = [r for r in records if self._day(r) == today]
        this_week = window(week_start)
        last_week = window(last_week_start, week_start)

        def minutes(rows: list[SessionRecord]) -> int:
            return sum(rounded_minutes(r.elapsed_seconds) for r in rows)

        avg_duration = 0
        weekly_avg = 0
        if records:
            avg_duration = rounded_minutes(
                sum(r.elapsed_seconds for r in records) // len(records)
            )
            weeks_active = max(1, math.ceil((now - ensure_utc(user.created_at)).days / 7))
            weekly_avg = round(user.total_sessions / weeks_active)

        return {
            "today": {
                "sessions": len(today_records),
                "minutes": minutes(today_records),
                "streak": user.streak_days,
            },
            "all_time": {
                "total_sessions": user.total_sessions,
                "total_minutes": user.total_minutes,
                "longest_streak": user.longest_streak,
                "avg_duration": avg_duration,
                "weekly_avg": weekly_avg,
            },
            "this_week": {"sessions": len(this_week), "minutes": minutes(this_week)},
            "last_week": {"sessions": len(last_week), "minutes": minutes(last_week)},
            "comparison": {
                "sessions_change": len(this_week) - len(last_week),
                "minutes_change": minutes(this_week) - minutes(last_week),
            },
        }

    async def activity(
        self, user_id: str, days: int = MAX_ACTIVITY_DAYS, now: datetime | None = None
    ) -> list[dict[str, Any]]:
        """Per-day session counts for a calendar heatmap, oldest day first."""
        days = max(1, min(days, MAX_ACTIVITY_DAYS))
        now = now or utcnow()
        today = local_date(now, self.tz)
        first_day = today - timedelta(days=days - 1)

        # One extra day of slack covers timezones ahead of UTC
        records = await self.completed_records(user_id, since=now - timedelta(days=days + 1))

        sessions: Counter[date] = Counter()
        minutes: Counter[date] = Counter()
        for record in records:
            day = self._day(record)
            sessions[day] += 1
            minutes[day] += rounded_minutes(record.elapsed_seconds)

        calendar = []
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            calendar.append(
                {
                    "date": day.isoformat(),
                    "sessions": sessions[day],
                    "minutes": minutes[day],
                    "active": sessions[day] > 0,
                }
            )
        return calendar

    async def pattern_usage(self, user_id: str) -> list[dict[str, Any]]:
        """Completed sessions grouped by timing, most used first."""
        records = await self.completed_records(user_id)

        usage: dict[str, dict[str, Any]] = {}
        for record in records:
            pattern = record.to_pattern()
            entry = usage.setdefault(
                pattern.signature,
                {
                    "signature": pattern.signature,
                    "name": pattern.label,
                    "pattern": pattern.to_dict(),
                    "count": 0,
                    "total_minutes": 0,
                },
            )
            entry["count"] += 1
            entry["total_minutes"] += rounded_minutes(record.elapsed_seconds)

        return sorted(usage.values(), key=lambda e: e["count"], reverse=True)

    async def insights(self, user_id: str) -> list[Insight]:
        """Personalized encouragement based on streak, consistency and timing."""
        user = await self._get_user(user_id)
        records = await self.completed_records(user_id)
        insights: list[Insight] = []

        if user.streak_days >= 3:
            insights.append(
                Insight(
                    "streak",
                    "🔥",
                    f"Amazing! You're on a {user.streak_days}-day streak. Keep it going!",
                )
            )
        elif user.streak_days == 0 and user.total_sessions > 0:
            insights.append(Insight("comeback", "💪", "Welcome back! Start a new streak today."))

        if len(records) >= CONSISTENCY_WINDOW:
            unique_days = len({self._day(r) for r in records[:CONSISTENCY_WINDOW]})
            if unique_days >= CONSISTENCY_MIN_DAYS:
                insights.append(
                    Insight(
                        "consistency",
                        "⭐",
                        f"You practiced {unique_days} out of the last 7 days. Excellent consistency!",
                    )
                )

        milestone = next_session_milestone(user.total_sessions)
        if milestone is not None:
            remaining = milestone - user.total_sessions
            plural = "s" if remaining > 1 else ""
            insights.append(
                Insight(
                    "milestone",
                    "🎯",
                    f"Only {remaining} more session{plural} until you reach {milestone} total sessions!",
                )
            )

        if len(records) >= TIMING_MIN_SESSIONS:
            hours = Counter(
                self._local(r.completed_at or r.ended_at).hour for r in records[:TIMING_WINDOW]
            )
            hour, _ = hours.most_common(1)[0]
            insights.append(
                Insight(
                    "timing",
                    "⏰",
                    f"You're most consistent in the {time_of_day(hour)}. That's your power hour!",
                )
            )

        if not insights:
            insights.append(
                Insight(
                    "encouragement",
                    "🌟",
                    "Every breath is a step toward calm. Start your practice today!",
                )
            )
        return insights
