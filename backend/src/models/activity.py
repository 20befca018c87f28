"""Login history and analytics events."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Login(Base):
    """One sign-in, with the device it came from."""

    __tablename__ = "logins"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), index=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )
    browser: Mapped[str] = mapped_column(String(32), default="Unknown")
    device_type: Mapped[str] = mapped_column(String(16), default="Desktop")
    os: Mapped[str] = mapped_column(String(32), default="Unknown")
    user_agent: Mapped[str] = mapped_column(String(1024), default="")
    language: Mapped[str | None] = mapped_column(String(32), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    referrer: Mapped[str] = mapped_column(String(1024), default="direct")
    page: Mapped[str | None] = mapped_column(String(1024), nullable=True)


class Event(Base):
    """A custom analytics event (page views and the like)."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), index=True)
    event_name: Mapped[str] = mapped_column(String(64))
    data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    page: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    referrer: Mapped[str] = mapped_column(String(1024), default="direct")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )
