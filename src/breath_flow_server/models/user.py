"""User account with embedded practice statistics."""

from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from breath_flow_server.breathing.streaks import UserStats
from breath_flow_server.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from breath_flow_server.models.achievement import UserAchievement


class User(Base, TimestampMixin):
    """Account owning sessions, custom patterns and reminders.

    Stats columns are written only by the stats aggregator. ``version`` is
    an optimistic lock: a write based on a stale read fails with
    ``StaleDataError`` instead of silently losing an update.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True)

    # Profile
    phone: Mapped[str | None] = mapped_column(String(20))
    location: Mapped[str | None] = mapped_column(String(100))
    avatar: Mapped[str | None] = mapped_column(String(500))

    # Preferences
    notifications: Mapped[bool] = mapped_column(default=True, nullable=False)
    daily_reminders: Mapped[bool] = mapped_column(default=True, nullable=False)
    achievement_alerts: Mapped[bool] = mapped_column(default=True, nullable=False)
    email_updates: Mapped[bool] = mapped_column(default=False, nullable=False)


    # Practice statistics
    total_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    streak_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_session_date: Mapped[date | None] = mapped_column(Date)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    achievements: Mapped[list["UserAchievement"]] = relationship(
        "UserAchievement",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserAchievement.unlocked_at",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def stats(self) -> UserStats:
        """Stats as an immutable snapshot."""
        return UserStats(
            total_sessions=self.total_sessions or 0,
            total_minutes=self.total_minutes or 0,
            streak_days=self.streak_days or 0,
            longest_streak=self.longest_streak or 0,
            last_session_date=self.last_session_date,
        )

    def apply_stats(self, stats: UserStats) -> None:
        """Write a stats snapshot back onto the row."""
        self.total_sessions = stats.total_sessions
        self.total_minutes = stats.total_minutes
        self.streak_days = stats.streak_days
        self.longest_streak = stats.longest_streak
        self.last_session_date = stats.last_session_date

    @property
    def preferences(self) -> dict[str, bool]:
        return {
            "notifications": self.notifications,
            "daily_reminders": self.daily_reminders,
            "achievement_alerts": self.achievement_alerts,
            "email_updates": self.email_updates,
        }

    def profile_dict(self) -> dict[str, object]:
        """Account details shown to the owner (never the password hash)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "location": self.location,
            "avatar": self.avatar,
            "preferences": self.preferences,
            "stats": self.stats.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, email={self.email}, is_active={self.is_active})>"
