"""User-authored breathing patterns."""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from breath_flow_server.breathing.pattern import Pattern
from breath_flow_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid


class BreathingPattern(Base, UserScopedMixin, TimestampMixin):
    """Custom pattern owned by one user.

    Presets live in code and are never stored here. Only the owner may
    replace or delete a row.
    """

    __tablename__ = "breathing_patterns"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_pattern_name"),
        {"comment": "Custom breathing patterns"},
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)

    inhale_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    hold_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exhale_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    hold_out_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_public: Mapped[bool] = mapped_column(default=False)

    def to_pattern(self) -> Pattern:
        """Domain pattern for the engine."""
        return Pattern(
            name=self.name,
            inhale_seconds=self.inhale_seconds,
            hold_seconds=self.hold_seconds,
            exhale_seconds=self.exhale_seconds,
            hold_out_seconds=self.hold_out_seconds,
            is_custom=True,
            owner_id=self.user_id,
            description=self.description,
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"<BreathingPattern(id={self.id}, user_id={self.user_id}, name='{self.name}')>"
