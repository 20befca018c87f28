"""
Single in-memory source of truth for the signed-in identity.

The broadcaster has two states. It starts Unconfirmed: nothing has been heard from
the auth provider yet, and get_current() may return the optimistic identity read
from the session cache. The first set_identity() call moves it to Confirmed, and it
never goes back. Access decisions must use confirmed_identity(), never the
optimistic value.
"""
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.session_cache import SessionCache

logger = logging.getLogger(__name__)


class AuthProviderTag(Enum):
    """Sign-in providers the site supports."""

    GOOGLE = "google.com"
    APPLE = "apple.com"
    MICROSOFT = "microsoft.com"
    FACEBOOK = "facebook.com"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "AuthProviderTag":
        """Map a provider id to a tag; anything unrecognized is UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Identity:
    """
    The signed-in principal.

    Absence of an identity is represented by None, never by a partially
    populated Identity.
    """

    uid: str
    display_name: str | None = None
    email: str | None = None
    email_verified: bool = False
    photo_url: str | None = None
    provider: AuthProviderTag = AuthProviderTag.UNKNOWN


IdentityCallback = Callable[[Identity | None], object]


class Subscription:
    """Handle returned by subscribe(). Calling it deregisters the callback."""

    def __init__(self, broadcaster: "AuthStateBroadcaster", callback: IdentityCallback) -> None:
        self._broadcaster = broadcaster
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        """Deregister; calling more than once is a no-op."""
        if not self.active:
            return
        self.active = False
        self._broadcaster._remove(self)

    def __call__(self) -> None:
        self.cancel()


_UNSET = object()


class AuthStateBroadcaster:
    """Fans identity changes out to subscribers, in subscription order."""

    def __init__(self, session_cache: "SessionCache | None" = None) -> None:
        self._session_cache = session_cache
        self._subscriptions: list[Subscription] = []
        self._confirmed = False
        self._current: Identity | None = None
        self._optimistic: object = _UNSET
        self._pending: deque[Identity | None] = deque()
        self._dispatching = False

    @property
    def is_confirmed(self) -> bool:
        """True once the auth provider has reported state at least once."""
        return self._confirmed

    def get_current(self) -> Identity | None:
        """
        Latest known identity.

        Before confirmation this is the session cache's optimistic copy (or None),
        suitable for first paint only.
        """
        if self._confirmed:
            return self._current
        if self._optimistic is _UNSET:
            self._optimistic = self._load_optimistic()
        return self._optimistic  # type: ignore[return-value]

    def confirmed_identity(self) -> Identity | None:
        """Identity confirmed by the provider; None while unconfirmed or signed out."""
        return self._current if self._confirmed else None

    def set_identity(self, identity: Identity | None) -> None:
        """
        Record a provider-confirmed identity (or its absence) and notify subscribers.

        Calls made from inside a subscriber are queued and delivered once the
        current fan-out completes, so no subscriber ever sees two notifications
        interleaved or out of order.
        """
        self._pending.append(identity)
        if not self._dispatching:
            self._drain()

    def subscribe(self, callback: IdentityCallback) -> Subscription:
        """
        Register a callback for identity changes.

        If state is already confirmed, the callback is invoked synchronously with
        the current value before this returns. A set_identity() made from that
        replay is queued like any other and delivered after the replay returns.
        """
        if not callable(callback):
            raise TypeError("callback must be callable")
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        if not self._confirmed:
            return subscription
        if self._dispatching:
            self._notify(subscription, self._current)
            return subscription
        self._dispatching = True
        try:
            self._notify(subscription, self._current)
        finally:
            self._dispatching = False
        self._drain()
        return subscription

    def _drain(self) -> None:
        self._dispatching = True
        try:
            while self._pending:
                self._apply(self._pending.popleft())
        finally:
            self._dispatching = False

    def _apply(self, identity: Identity | None) -> None:
        self._current = identity
        self._confirmed = True
        self._optimistic = _UNSET
        if self._session_cache is not None:
            if identity is None:
                self._session_cache.clear()
            else:
                self._session_cache.write(identity)
        logger.info("Auth state changed: %s", identity.uid if identity else "signed out")
        for subscription in list(self._subscriptions):
            if subscription.active:
                self._notify(subscription, identity)

    def _notify(self, subscription: Subscription, identity: Identity | None) -> None:
        try:
            subscription.callback(identity)
        except Exception:
            logger.exception("Auth state subscriber failed")

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def _load_optimistic(self) -> Identity | None:
        if self._session_cache is None:
            return None
        entry = self._session_cache.read()
        return entry.to_identity() if entry else None
