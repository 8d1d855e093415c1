"""API key model for bearer-token authentication."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from breath_flow_server.models.base import Base


class APIKey(Base):
    """Bearer key resolving a request to its owning user.

    Keys are issued on register/login and stored as SHA-256 hashes; the raw
    key is shown to the client once.

    Attributes:
        id: Auto-incrementing primary key
        key_hash: SHA-256 hash of the actual API key
        key_prefix: First 12 chars of key for identification (e.g., "bfk_a1b2c3d4")
        name: Human-readable label (e.g., "login")
        user_id: Owning user
        is_active: False once revoked (logout)
        created_at: When the key was issued
        last_used_at: Last time the key authenticated a request
    """

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True)
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    key_prefix: Mapped[str] = mapped_column(String(12), index=True, default="")
    name: Mapped[str] = mapped_column(String(100))

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<APIKey(id={self.id}, name='{self.name}', user={self.user_id}, active={self.is_active})>"
