"""Breathing session history."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from breath_flow_server.breathing.pattern import Pattern
from breath_flow_server.models.base import Base, UserScopedMixin, generate_uuid


class SessionRecord(Base, UserScopedMixin):
    """One finished breathing session.

    Rows are inserted once, when the session ends, and are append-only
    history afterwards. The only column that changes later is
    ``stats_applied``, which flips to True in the same transaction that
    folds the session into the owner's stats.

    Attributes:
        pattern_*: Snapshot of the pattern as it was run; later edits or
            deletion of a custom pattern do not rewrite history
        target_seconds: Requested session length
        elapsed_seconds: Time actually practiced
        completed: Counted towards stats (target reached, or ended on
            purpose with partial credit)
        early_exit: The user abandoned the session
        completed_at: Set only for completed sessions
        ended_at: When the session stopped, completed or not
    """

    __tablename__ = "session_records"
    __table_args__ = (
        Index("ix_session_records_user_started", "user_id", "started_at"),
        Index("ix_session_records_pending_stats", "completed", "stats_applied"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    pattern_name: Mapped[str] = mapped_column(String(100), nullable=False)
    inhale_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    hold_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exhale_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    hold_out_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    target_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    elapsed_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    early_exit: Mapped[bool] = mapped_column(default=False, nullable=False)
    stats_applied: Mapped[bool] = mapped_column(default=False, nullable=False)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def to_pattern(self) -> Pattern:
        """Pattern snapshot that was run."""
        return Pattern(
            name=self.pattern_name,
            inhale_seconds=self.inhale_seconds,
            hold_seconds=self.hold_seconds,
            exhale_seconds=self.exhale_seconds,
            hold_out_seconds=self.hold_out_seconds,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "pattern": self.to_pattern().to_dict(),
            "target_seconds": self.target_seconds,
            "elapsed_seconds": self.elapsed_seconds,
            "completed": self.completed,
            "early_exit": self.early_exit,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SessionRecord(id={self.id}, user_id={self.user_id}, "
            f"elapsed={self.elapsed_seconds}, completed={self.completed})>"
        )
