"""Identity-scoped remote progress ledger."""
import logging
from datetime import UTC, datetime
from typing import Literal, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.progress import Progress
from schemas.progress import ProgressRecord, ProgressStatus, category_of

logger = logging.getLogger(__name__)

CounterField = Literal["time_spent", "view_count"]


class StoreError(Exception):
    """Raised when a remote ledger call fails."""


class RemoteProgressStore(Protocol):
    """
    Keyed access to a user's progress records.

    Every call may fail independently with StoreError.
    """

    async def get(self, uid: str, problem_id: str) -> ProgressRecord | None: ...

    async def set(self, uid: str, record: ProgressRecord) -> None: ...

    async def increment(
        self, uid: str, problem_id: str, field: CounterField, amount: int,
    ) -> None: ...

    async def list_all(self, uid: str) -> list[ProgressRecord]: ...


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def progress_to_record(row: Progress) -> ProgressRecord:
    """Convert a ledger row to a ProgressRecord (baselines mirror the counters)."""
    return ProgressRecord(
        problem_id=row.problem_id,
        status=ProgressStatus.parse(row.status),
        first_seen_at=ensure_utc(row.first_seen_at),
        last_updated_at=ensure_utc(row.last_updated_at),
        solved_at=ensure_utc(row.solved_at),
        time_spent=row.time_spent,
        view_count=row.view_count,
        synced_time_spent=row.time_spent,
        synced_view_count=row.view_count,
    )


class SqlProgressStore:
    """
    RemoteProgressStore over the progress table.

    Each call opens its own session so per-record calls can run concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, uid: str, problem_id: str) -> ProgressRecord | None:
        try:
            async with self._session_factory() as db:
                row = await self._get_row(db, uid, problem_id)
                return progress_to_record(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"get {uid}/{problem_id} failed: {e}") from e

    async def set(self, uid: str, record: ProgressRecord) -> None:
        values = {
            "category": category_of(record.problem_id),
            "status": record.status.value,
            "first_seen_at": record.first_seen_at,
            "last_updated_at": record.last_updated_at,
            "solved_at": record.solved_at,
            "time_spent": record.time_spent,
            "view_count": record.view_count,
        }
        try:
            async with self._session_factory() as db:
                row = await self._get_row(db, uid, record.problem_id)
                if row is None:
                    db.add(Progress(uid=uid, problem_id=record.problem_id, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"set {uid}/{record.problem_id} failed: {e}") from e

    async def increment(
        self, uid: str, problem_id: str, field: CounterField, amount: int,
    ) -> None:
        column = getattr(Progress, field)
        stmt = (
            update(Progress)
            .where(Progress.uid == uid, Progress.problem_id == problem_id)
            .values({column: column + amount, Progress.last_updated_at: datetime.now(UTC)})
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                await db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"increment {uid}/{problem_id} failed: {e}") from e
        if result.rowcount == 0:
            raise StoreError(f"increment {uid}/{problem_id} failed: no such record")

    async def list_all(self, uid: str) -> list[ProgressRecord]:
        query = (
            select(Progress)
            .where(Progress.uid == uid)
            .order_by(Progress.last_updated_at.desc())
        )
        try:
            async with self._session_factory() as db:
                rows = (await db.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"list {uid} failed: {e}") from e
        records = []
        for row in rows:
            try:
                records.append(progress_to_record(row))
            except ValueError:
                logger.warning("Skipping invalid progress row %s/%s", uid, row.problem_id)
        return records

    async def _get_row(self, db: AsyncSession, uid: str, problem_id: str) -> Progress | None:
        result = await db.execute(
            select(Progress).where(Progress.uid == uid, Progress.problem_id == problem_id),
        )
        return result.scalar_one_or_none()
