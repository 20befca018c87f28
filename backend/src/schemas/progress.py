"""Pydantic schemas for per-problem progress records."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class ProgressStatus(Enum):
    """Progress status, ordered by rank (see STATUS_RANK)."""

    NOT_STARTED = "not-started"
    WORKING = "working"
    NEEDS_HELP = "needs-help"
    SOLVED = "solved"

    @property
    def rank(self) -> int:
        """Position in not-started < working < needs-help < solved."""
        return STATUS_RANK[self]

    @classmethod
    def parse(cls, value: "str | ProgressStatus") -> "ProgressStatus":
        """
        Parse a status, accepting the legacy spellings stored by older pages.

        Raises ValueError for anything unrecognized.
        """
        if isinstance(value, ProgressStatus):
            return value
        normalized = value.strip().lower()
        normalized = _LEGACY_STATUS_ALIASES.get(normalized, normalized)
        return cls(normalized)


STATUS_RANK: dict[ProgressStatus, int] = {
    ProgressStatus.NOT_STARTED: 0,
    ProgressStatus.WORKING: 1,
    ProgressStatus.NEEDS_HELP: 2,
    ProgressStatus.SOLVED: 3,
}

_LEGACY_STATUS_ALIASES = {
    "notstarted": "not-started",
    "need-help": "needs-help",
    "help": "needs-help",
}

# Category prefix -> display name. Problem ids are "<prefix>_<key>", e.g. "lc_1".
PROBLEM_CATEGORIES: dict[str, str] = {
    "lc": "LeetCode",
    "mlsd": "ML System Design",
    "mlcoding": "ML Coding",
    "behavioral": "Behavioral",
}


def make_problem_id(prefix: str, key: str | int) -> str:
    """Build a composite problem id from a category prefix and problem key."""
    return f"{prefix}_{key}"


def category_of(problem_id: str) -> str:
    """Display name of the category a problem id belongs to ('Unknown' if none)."""
    prefix = problem_id.split("_", 1)[0]
    return PROBLEM_CATEGORIES.get(prefix, "Unknown")


class ProgressRecord(BaseModel):
    """
    Progress on one problem.

    synced_time_spent and synced_view_count are local-only bookkeeping: the counter
    values the remote ledger held after the last pull. Only the difference
    accumulated since then is added to the remote ledger on the next push.
    """

    problem_id: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    first_seen_at: datetime
    last_updated_at: datetime
    solved_at: datetime | None = None
    time_spent: int = Field(default=0, ge=0)
    view_count: int = Field(default=0, ge=0)
    synced_time_spent: int = Field(default=0, ge=0)
    synced_view_count: int = Field(default=0, ge=0)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: str | ProgressStatus) -> ProgressStatus:
        """Accept legacy status spellings."""
        return ProgressStatus.parse(v)

    @property
    def category(self) -> str:
        """Category display name derived from the problem id prefix."""
        return category_of(self.problem_id)

    @property
    def unsynced_time_spent(self) -> int:
        """Seconds accumulated locally since the last pull."""
        return max(0, self.time_spent - self.synced_time_spent)

    @property
    def unsynced_view_count(self) -> int:
        """Views accumulated locally since the last pull."""
        return max(0, self.view_count - self.synced_view_count)

    @classmethod
    def new(
        cls,
        problem_id: str,
        now: datetime,
        status: ProgressStatus = ProgressStatus.NOT_STARTED,
    ) -> "ProgressRecord":
        """Create a fresh record first seen at now."""
        return cls(
            problem_id=problem_id,
            status=status,
            first_seen_at=now,
            last_updated_at=now,
            solved_at=now if status is ProgressStatus.SOLVED else None,
        )
