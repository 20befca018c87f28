"""Anonymous, page-local progress ledger kept in local storage."""
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import ValidationError

from core.local_storage import LocalStorage, StorageError
from schemas.progress import ProgressRecord, ProgressStatus

logger = logging.getLogger(__name__)

PROGRESS_KEY_PREFIX = "progress_"


def progress_key(problem_id: str) -> str:
    """Storage key for a problem id ('lc_1' -> 'progress_lc_1')."""
    return f"{PROGRESS_KEY_PREFIX}{problem_id}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LocalProgressLedger:
    """
    Progress records keyed by problem id.

    Values are JSON ProgressRecords. Older pages stored the bare status string
    ("solved"); those entries are read as records with that status. Reads that
    fail degrade to absent; writes that fail are logged and report False.
    """

    def __init__(
        self, storage: LocalStorage, clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._clock = clock

    def problem_ids(self) -> list[str]:
        """Every problem id with a stored record."""
        try:
            keys = self._storage.keys()
        except StorageError as e:
            logger.warning("Listing local progress failed: %s", e)
            return []
        return [
            key[len(PROGRESS_KEY_PREFIX):]
            for key in keys
            if key.startswith(PROGRESS_KEY_PREFIX) and len(key) > len(PROGRESS_KEY_PREFIX)
        ]

    def get(self, problem_id: str) -> ProgressRecord | None:
        """Record for problem_id, or None if missing or unreadable."""
        try:
            raw = self._storage.get_item(progress_key(problem_id))
        except StorageError as e:
            logger.warning("Reading local progress for %s failed: %s", problem_id, e)
            return None
        if raw is None:
            return None
        return self._decode(problem_id, raw)

    def all(self) -> list[ProgressRecord]:
        """All readable records."""
        records = []
        for problem_id in self.problem_ids():
            record = self.get(problem_id)
            if record is not None:
                records.append(record)
        return records

    def put(self, record: ProgressRecord) -> bool:
        """Store record, replacing whatever was there (last write wins)."""
        try:
            self._storage.set_item(progress_key(record.problem_id), record.model_dump_json())
        except StorageError as e:
            logger.warning("Writing local progress for %s failed: %s", record.problem_id, e)
            return False
        return True

    def set_status(self, problem_id: str, status: ProgressStatus | str) -> ProgressRecord:
        """
        Set the status chosen by the user.

        An explicit choice may lower the status, including away from solved.
        """
        status = ProgressStatus.parse(status)
        now = self._clock()
        record = self.get(problem_id)
        if record is None:
            record = ProgressRecord.new(problem_id, now, status)
        else:
            solved_at = record.solved_at
            if status is ProgressStatus.SOLVED and record.status is not ProgressStatus.SOLVED:
                solved_at = now
            elif status is not ProgressStatus.SOLVED:
                solved_at = None
            record = record.model_copy(
                update={"status": status, "last_updated_at": now, "solved_at": solved_at},
            )
        self.put(record)
        return record

    def record_view(self, problem_id: str) -> ProgressRecord:
        """Count one view of a problem."""
        now = self._clock()
        record = self.get(problem_id) or ProgressRecord.new(problem_id, now)
        record = record.model_copy(update={"view_count": record.view_count + 1})
        self.put(record)
        return record

    def add_time(self, problem_id: str, seconds: int) -> ProgressRecord | None:
        """Add seconds spent on a problem; non-positive amounts are ignored."""
        if seconds <= 0:
            return self.get(problem_id)
        now = self._clock()
        record = self.get(problem_id) or ProgressRecord.new(problem_id, now)
        record = record.model_copy(
            update={"time_spent": record.time_spent + seconds, "last_updated_at": now},
        )
        self.put(record)
        return record

    def _decode(self, problem_id: str, raw: str) -> ProgressRecord | None:
        try:
            return ProgressRecord.model_validate_json(raw)
        except ValidationError:
            pass
        # Legacy format: bare status string
        try:
            status = ProgressStatus.parse(raw)
        except ValueError:
            logger.warning("Local progress for %s is corrupt, ignoring it", problem_id)
            return None
        # No update time was stored; the epoch loses every "latest wins" merge.
        return ProgressRecord(
            problem_id=problem_id,
            status=status,
            first_seen_at=self._clock(),
            last_updated_at=datetime.fromtimestamp(0, UTC),
        )
