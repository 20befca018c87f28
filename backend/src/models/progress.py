"""Remote progress ledger: one row per (uid, problem_id)."""
from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Progress(Base):
    """Progress on one problem for one user."""

    __tablename__ = "progress"
    __table_args__ = (
        UniqueConstraint("uid", "problem_id", name="uq_progress_uid_problem_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), index=True)
    problem_id: Mapped[str] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(64), default="Unknown")
    status: Mapped[str] = mapped_column(String(32), default="not-started")
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_viewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    solved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_spent: Mapped[int] = mapped_column(default=0, comment="Seconds")
    view_count: Mapped[int] = mapped_column(default=0)
