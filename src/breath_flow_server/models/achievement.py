"""Unlocked achievements."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from breath_flow_server.models.base import Base, UserScopedMixin, generate_uuid, utcnow

if TYPE_CHECKING:
    from breath_flow_server.models.user import User


class UserAchievement(Base, UserScopedMixin):
    """An achievement a user has unlocked.

    Unlocks are never revoked; the unique key per user makes a repeated
    unlock fail at the database instead of duplicating the entry.
    """

    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "key", name="uq_user_achievement"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    key: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="achievements")

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "unlocked_at": self.unlocked_at.isoformat() if self.unlocked_at else None,
        }

    def __repr__(self) -> str:
        """String representation."""
        return f"<UserAchievement(user_id={self.user_id}, key={self.key})>"
