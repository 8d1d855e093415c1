"""User feedback about the app."""

from sqlalchemy import CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from breath_flow_server.models.base import Base, TimestampMixin, UserScopedMixin, generate_uuid

MAX_FEEDBACK_LENGTH = 500


class Feedback(Base, UserScopedMixin, TimestampMixin):
    """One rating and comment per user.

    Name and email are copied from the account at submission. Entries are
    hidden until a moderator approves them and marks them public.
    """

    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_feedback_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[str] = mapped_column(String(MAX_FEEDBACK_LENGTH), nullable=False)
    is_approved: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_public: Mapped[bool] = mapped_column(default=False, nullable=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "rating": self.rating,
            "feedback": self.text,
            "is_approved": self.is_approved,
            "is_public": self.is_public,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def to_public_dict(self) -> dict[str, object]:
        """Fields shown on the public testimonial list."""
        return {
            "name": self.name,
            "rating": self.rating,
            "feedback": self.text,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        """String representation."""
        return f"<Feedback(id={self.id}, user_id={self.user_id}, rating={self.rating})>"
