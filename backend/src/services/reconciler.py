"""
Reconciliation of the local (anonymous) and remote (identity-scoped) progress ledgers.

Runs once per absent -> present identity transition:

1. Push: every local record is upserted into the remote ledger. New remote records
   are created from the local value; existing ones are merged field by field
   (see merge_records).
2. Pull: the full remote ledger is read back and written over the local ledger, so
   both sides hold the same merged state.

Each record is pushed and pulled independently. A failure on one record is logged
and skipped; it is retried implicitly on the next transition, never rolled back.
"""
import asyncio
import logging
from dataclasses import dataclass, field

from core.auth_state import AuthStateBroadcaster, Identity, Subscription
from schemas.progress import ProgressRecord, ProgressStatus
from services.local_progress import LocalProgressLedger
from services.remote_store import RemoteProgressStore

logger = logging.getLogger(__name__)


def _max_optional(*values):
    present = [v for v in values if v is not None]
    return max(present) if present else None


def merge_records(local: ProgressRecord, remote: ProgressRecord) -> ProgressRecord:
    """
    Merge a local record into the existing remote record for the same problem.

    - status: the higher ranked of the two, so a stale lower status never
      downgrades a remote "solved".
    - last_updated_at / solved_at: latest wins. first_seen_at: earliest wins.
    - time_spent / view_count: the remote value plus what accumulated locally
      since the last pull, which keeps repeated runs from double counting.
    """
    status = local.status if local.status.rank > remote.status.rank else remote.status
    solved_at = None
    if status is ProgressStatus.SOLVED:
        solved_at = _max_optional(
            local.solved_at if local.status is ProgressStatus.SOLVED else None,
            remote.solved_at if remote.status is ProgressStatus.SOLVED else None,
        )
    return ProgressRecord(
        problem_id=remote.problem_id,
        status=status,
        first_seen_at=min(local.first_seen_at, remote.first_seen_at),
        last_updated_at=max(local.last_updated_at, remote.last_updated_at),
        solved_at=solved_at,
        time_spent=remote.time_spent + local.unsynced_time_spent,
        view_count=remote.view_count + local.unsynced_view_count,
    )


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation run."""

    uid: str
    pushed: list[str] = field(default_factory=list)
    pulled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if every record synced."""
        return not self.failed


class ProgressReconciler:
    """
    Pushes local progress to the remote ledger and pulls the merged state back.

    Runs over the same local ledger are serialized: a second request, for the same
    uid or a different one, waits for the first to finish, so one user's pull never
    lands in the middle of another user's push. Per-record remote calls within a
    run are issued concurrently, bounded by concurrency.
    """

    def __init__(
        self,
        ledger: LocalProgressLedger,
        remote: RemoteProgressStore,
        concurrency: int = 8,
    ) -> None:
        self._ledger = ledger
        self._remote = remote
        self._semaphore = asyncio.Semaphore(concurrency)
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._last_identity: Identity | None = None
        self._subscription: Subscription | None = None

    @property
    def ledger(self) -> LocalProgressLedger:
        """The local ledger this reconciler writes into."""
        return self._ledger

    async def reconcile(self, uid: str) -> ReconcileResult:
        """Run push-then-pull for uid."""
        async with self._lock:
            result = ReconcileResult(uid=uid)
            await self._push(uid, result)
            await self._pull(uid, result)
            logger.info(
                "Reconciled progress for %s: %d pushed, %d pulled, %d failed",
                uid, len(result.pushed), len(result.pulled), len(result.failed),
            )
            return result

    async def _push(self, uid: str, result: ReconcileResult) -> None:
        records = self._ledger.all()
        outcomes = await asyncio.gather(
            *(self._push_one(uid, record) for record in records),
        )
        for record, ok in zip(records, outcomes, strict=True):
            (result.pushed if ok else result.failed).append(record.problem_id)

    async def _push_one(self, uid: str, local: ProgressRecord) -> bool:
        async with self._semaphore:
            try:
                remote = await self._remote.get(uid, local.problem_id)
                merged = local if remote is None else merge_records(local, remote)
                await self._remote.set(uid, merged)
            except Exception:
                logger.exception("Pushing progress for %s/%s failed", uid, local.problem_id)
                return False
        return True

    async def _pull(self, uid: str, result: ReconcileResult) -> None:
        try:
            remote_records = await self._remote.list_all(uid)
        except Exception:
            logger.exception("Pulling progress for %s failed", uid)
            return
        for record in remote_records:
            synced = record.model_copy(
                update={
                    "synced_time_spent": record.time_spent,
                    "synced_view_count": record.view_count,
                },
            )
            if self._ledger.put(synced):
                result.pulled.append(record.problem_id)
            else:
                result.failed.append(record.problem_id)

    def attach(self, broadcaster: AuthStateBroadcaster) -> Subscription:
        """Reconcile automatically on every absent -> present transition."""
        self._subscription = broadcaster.subscribe(self._on_identity)
        return self._subscription

    def detach(self) -> None:
        """Stop reacting to identity changes."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_identity(self, identity: Identity | None) -> None:
        previous = self._last_identity
        self._last_identity = identity
        if identity is None:
            return
        if previous is not None and previous.uid == identity.uid:
            return
        self.schedule(identity.uid)

    def schedule(self, uid: str) -> asyncio.Task | None:
        """Start a background run for uid on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, skipping reconciliation for %s", uid)
            return None
        task = loop.create_task(self.reconcile(uid))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every scheduled run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
