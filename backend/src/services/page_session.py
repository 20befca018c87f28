"""
Wiring for one page session.

A page session owns the broadcaster, the session cache and the local ledger, and
the controllers that follow them. Everything remote goes through the async
session factory; everything local through the key-value storage.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.auth_provider import AuthProvider
from core.auth_state import AuthStateBroadcaster, Identity, Subscription
from core.config import Settings
from core.content_gate import ContentGateController, Navigator, SignInPrompt
from core.local_storage import LocalStorage
from core.session_cache import SessionCache
from schemas.catalog import Catalog
from services import progress_service
from services.auth_service import AuthService
from services.beacon import Beacon, HttpBeacon
from services.catalog import CatalogRenderer
from services.local_progress import LocalProgressLedger
from services.progress_service import DeviceInfo
from services.reconciler import ProgressReconciler
from services.remote_store import SqlProgressStore
from services.sign_in_sync import SignInSync
from services.stats_cache import invalidate_user_stats
from services.time_tracker import TimeTracker

logger = logging.getLogger(__name__)


def remote_time_recorder(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str, str, int], Awaitable[bool]]:
    """Build a TimeTracker recorder that adds seconds to the remote ledger."""
    async def record(uid: str, problem_id: str, seconds: int) -> bool:
        async with session_factory() as db:
            recorded = await progress_service.update_time_spent(db, uid, problem_id, seconds)
            await db.commit()
        if recorded:
            await invalidate_user_stats(uid)
        return recorded

    return record


@dataclass
class PageSession:
    """Every component of a page, constructed and connected."""

    broadcaster: AuthStateBroadcaster
    session_cache: SessionCache
    ledger: LocalProgressLedger
    reconciler: ProgressReconciler
    sign_in_sync: SignInSync
    auth: AuthService
    gate: ContentGateController
    time_tracker: TimeTracker
    catalog: CatalogRenderer | None = None
    _subscription: Subscription | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls,
        settings: Settings,
        storage: LocalStorage,
        session_factory: async_sessionmaker[AsyncSession],
        provider: AuthProvider,
        prompt: SignInPrompt,
        navigator: Navigator,
        catalog: Catalog | None = None,
        device: DeviceInfo | None = None,
        beacon: Beacon | None = None,
    ) -> "PageSession":
        """
        Construct the session. Nothing is subscribed until start().

        The sign-in flow owns reconciliation, so the reconciler is not attached
        to the broadcaster on its own.
        """
        session_cache = SessionCache(storage, settings.session_cache_key)
        broadcaster = AuthStateBroadcaster(session_cache)
        ledger = LocalProgressLedger(storage)
        reconciler = ProgressReconciler(
            ledger, SqlProgressStore(session_factory), concurrency=settings.sync_concurrency,
        )
        sign_in_sync = SignInSync(session_factory, reconciler, broadcaster, device)
        renderer = None
        if catalog is not None:
            renderer = CatalogRenderer(catalog, ledger, sync_hook=sign_in_sync.push_status)
        return cls(
            broadcaster=broadcaster,
            session_cache=session_cache,
            ledger=ledger,
            reconciler=reconciler,
            sign_in_sync=sign_in_sync,
            auth=AuthService(provider, broadcaster, prompt, navigator, settings),
            gate=ContentGateController(
                broadcaster, prompt, navigator, settings.protected_redirect,
            ),
            time_tracker=TimeTracker(
                remote_time_recorder(session_factory),
                beacon or HttpBeacon(settings.beacon_url),
                interval_seconds=settings.time_tracking_interval_seconds,
            ),
            catalog=renderer,
        )

    def start(self) -> None:
        """Follow identity changes, then let the provider start reporting."""
        self.sign_in_sync.attach()
        self._subscription = self.broadcaster.subscribe(self._on_identity)
        self.auth.start()

    def _on_identity(self, identity: Identity | None) -> None:
        """Stop tracking time once the user it was attributed to is gone."""
        tracked_uid = self.time_tracker.uid
        if tracked_uid is not None and (identity is None or identity.uid != tracked_uid):
            self.time_tracker.stop()

    def view_problem(self, problem_id: str) -> None:
        """Count a view locally and start tracking time if someone is signed in."""
        self.ledger.record_view(problem_id)
        identity: Identity | None = self.broadcaster.confirmed_identity()
        if identity is not None:
            self.time_tracker.start(identity.uid, problem_id)

    async def close(self) -> None:
        """Stop tracking and wait for in-flight remote work."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.time_tracker.stop()
        self.sign_in_sync.detach()
        await self.time_tracker.wait_idle()
        await self.sign_in_sync.wait_idle()
        await self.reconciler.wait_idle()
