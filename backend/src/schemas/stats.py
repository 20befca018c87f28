"""Pydantic schemas for user stats and login history."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CategoryStats(BaseModel):
    """Progress counts for one problem category."""

    accessed: int = 0
    solved: int = 0
    working: int = 0
    needs_help: int = 0
    time_spent: int = 0  # Seconds


class UserSummary(BaseModel):
    """Profile fields shown alongside stats."""

    email: str | None
    display_name: str
    created_at: datetime | None
    last_login_at: datetime | None
    total_logins: int


class OverallStats(BaseModel):
    """Totals across all categories."""

    problems_accessed: int
    problems_solved: int
    total_time_spent: int  # Seconds, from the user's aggregate counter
    last_activity_at: datetime | None


class UserStats(BaseModel):
    """Stats response: profile summary, totals and per-category breakdown."""

    user: UserSummary
    overall: OverallStats
    by_category: dict[str, CategoryStats]


class LoginRecord(BaseModel):
    """One entry of a user's login history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime
    browser: str
    device_type: str
    os: str
    referrer: str
    page: str | None = None
