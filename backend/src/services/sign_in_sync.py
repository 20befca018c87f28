"""
Remote bookkeeping that follows a sign-in.

On every absent -> present identity transition: upsert the user profile, record
the login, reconcile progress, and record a page view. Each step is independent;
a failed step is logged and the rest still run.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.auth_state import AuthStateBroadcaster, Identity, Subscription
from schemas.progress import ProgressRecord, ProgressStatus
from services import progress_service
from services.progress_service import DeviceInfo
from services.reconciler import ProgressReconciler, ReconcileResult
from services.stats_cache import invalidate_user_stats

logger = logging.getLogger(__name__)


class SignInSync:
    """Runs the post-sign-in flow and pushes individual status changes while signed in."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        reconciler: ProgressReconciler,
        broadcaster: AuthStateBroadcaster,
        device: DeviceInfo | None = None,
        page_title: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._reconciler = reconciler
        self._broadcaster = broadcaster
        self._device = device or DeviceInfo()
        self._page_title = page_title
        self._last_identity: Identity | None = None
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()

    def attach(self) -> Subscription:
        """Start following identity changes."""
        self._subscription = self._broadcaster.subscribe(self._on_identity)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_identity(self, identity: Identity | None) -> None:
        previous = self._last_identity
        self._last_identity = identity
        if identity is None or (previous is not None and previous.uid == identity.uid):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, skipping sign-in sync for %s", identity.uid)
            return
        task = loop.create_task(self.run(identity))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run(self, identity: Identity) -> ReconcileResult | None:
        """Execute the whole post-sign-in flow for identity."""
        uid = identity.uid
        await self._step("profile", uid, self._upsert_profile(identity))
        await self._step("login", uid, self._record_login(uid))
        result = None
        try:
            result = await self._reconciler.reconcile(uid)
        except Exception:
            logger.exception("Sign-in sync step 'reconcile' failed for %s", uid)
        await invalidate_user_stats(uid)
        await self._step("page_view", uid, self._track_page_view(uid))
        return result

    async def _step(self, name: str, uid: str, coro) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Sign-in sync step '%s' failed for %s", name, uid)

    async def _upsert_profile(self, identity: Identity) -> None:
        async with self._session_factory() as db:
            await progress_service.create_or_update_user_profile(db, identity)
            await db.commit()

    async def _record_login(self, uid: str) -> None:
        async with self._session_factory() as db:
            await progress_service.record_login(db, uid, self._device)
            await db.commit()

    async def _track_page_view(self, uid: str) -> None:
        async with self._session_factory() as db:
            await progress_service.track_page_view(
                db, uid, self._device.page or "/", self._page_title,
            )
            await db.commit()

    async def push_status(self, problem_id: str, status: ProgressStatus) -> bool:
        """
        Mirror a local status change to the remote ledger.

        Counters the page accumulated since the last sync travel with the status,
        and the local record is then marked synced up to the remote totals, so a
        later reconciliation does not count them again.

        No-op (False) unless a confirmed identity is present.
        """
        identity = self._broadcaster.confirmed_identity()
        if identity is None:
            return False
        ledger = self._reconciler.ledger
        local = ledger.get(problem_id)
        try:
            async with self._session_factory() as db:
                progress = await progress_service.update_problem_progress(
                    db, identity.uid, problem_id, status, local=local,
                )
                time_spent, view_count = progress.time_spent, progress.view_count
                await db.commit()
        except Exception:
            logger.exception("Pushing progress for %s/%s failed", identity.uid, problem_id)
            return False
        self._mark_synced(problem_id, local, time_spent, view_count)
        await invalidate_user_stats(identity.uid)
        return True

    def _mark_synced(
        self,
        problem_id: str,
        pushed: ProgressRecord | None,
        time_spent: int,
        view_count: int,
    ) -> None:
        """Move the local baselines to the remote totals, keeping anything counted meanwhile."""
        ledger = self._reconciler.ledger
        current = ledger.get(problem_id)
        if current is None:
            return
        pushed_time = pushed.time_spent if pushed else 0
        pushed_views = pushed.view_count if pushed else 0
        ledger.put(
            current.model_copy(
                update={
                    "time_spent": time_spent + max(0, current.time_spent - pushed_time),
                    "view_count": view_count + max(0, current.view_count - pushed_views),
                    "synced_time_spent": time_spent,
                    "synced_view_count": view_count,
                },
            ),
        )

    async def wait_idle(self) -> None:
        """Wait for every scheduled post-sign-in flow to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
