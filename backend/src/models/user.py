"""User model for storing profiles of signed-in users."""
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User profile plus aggregate activity stats, created on first sign-in."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        index=True,
        comment="Stable identity id issued by the auth provider",
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str] = mapped_column(String(255), default="")
    photo_url: Mapped[str] = mapped_column(String(1024), default="")
    email_verified: Mapped[bool] = mapped_column(default=False)
    provider: Mapped[str] = mapped_column(String(32), default="unknown")
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    total_logins: Mapped[int] = mapped_column(default=0)

    # Aggregate stats
    problems_solved: Mapped[int] = mapped_column(default=0)
    problems_accessed: Mapped[int] = mapped_column(default=0)
    total_time_spent: Mapped[int] = mapped_column(default=0, comment="Seconds")
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
