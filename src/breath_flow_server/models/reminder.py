"""Practice reminders."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from breath_flow_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class Reminder(Base, UserScopedMixin, TimestampMixin):
    """Daily reminder at a wall-clock time ("HH:MM") on chosen weekdays."""

    __tablename__ = "reminders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    time: Mapped[str] = mapped_column(String(5), nullable=False, index=True)
    days: Mapped[list[str]] = mapped_column(JSON, default=lambda: list(WEEKDAYS), nullable=False)
    enabled: Mapped[bool] = mapped_column(default=True, index=True)
    via_email: Mapped[bool] = mapped_column(default=False)
    last_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "time": self.time,
            "days": list(self.days),
            "enabled": self.enabled,
            "via_email": self.via_email,
            "last_sent_at": self.last_sent_at.isoformat() if self.last_sent_at else None,
        }

    def __repr__(self) -> str:
        """String representation."""
        return f"<Reminder(id={self.id}, user_id={self.user_id}, time={self.time})>"
