"""Mirrors the current identity into page state (classes, visibility, profile fields)."""
import logging
from dataclasses import dataclass, field

from core.auth_state import AuthStateBroadcaster, Identity, Subscription
from core.content_gate import Region

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "data:image/svg+xml;base64,PHN2ZyB4bWxucz0iaHR0cDovL3d3dy53My5vcmcvMjAwMC9zdmciIHdpZHRoPSI0MCIgaGVpZ2h0PSI0MCIgdmlld0JveD0iMCAwIDQwIDQwIj48cmVjdCB3aWR0aD0iNDAiIGhlaWdodD0iNDAiIHJ4PSIyMCIgZmlsbD0iIzY0NzQ4YiIvPjwvc3ZnPg=="  # noqa: E501

CLASS_HIDDEN = "auth-hidden"
CLASS_VISIBLE = "auth-visible"
CLASS_LOADING = "auth-loading"
CLASS_AUTHENTICATED = "auth-authenticated"
CLASS_UNAUTHENTICATED = "auth-unauthenticated"


@dataclass
class AuthPage:
    """The parts of a page that depend on who is signed in."""

    body_classes: set[str] = field(default_factory=lambda: {CLASS_LOADING})
    login_visible: bool = True
    logout_visible: bool = False
    profile_visible: bool = False
    user_name: str = ""
    user_email: str = ""
    avatar_url: str = DEFAULT_AVATAR
    protected: list[Region] = field(default_factory=list)
    guest_only: list[Region] = field(default_factory=list)

    @property
    def is_loading(self) -> bool:
        return CLASS_LOADING in self.body_classes


def _show(region: Region, visible: bool) -> None:
    region.classes.discard(CLASS_VISIBLE if not visible else CLASS_HIDDEN)
    region.classes.add(CLASS_VISIBLE if visible else CLASS_HIDDEN)
    region.attributes["aria-hidden"] = "false" if visible else "true"


class AuthView:
    """
    Renders identity changes onto an AuthPage.

    start() paints the optimistic session-cache identity immediately when the
    broadcaster is still unconfirmed, then follows confirmed changes.
    """

    def __init__(
        self,
        page: AuthPage,
        broadcaster: AuthStateBroadcaster | None,
        default_avatar: str = DEFAULT_AVATAR,
    ) -> None:
        self.page = page
        self._broadcaster = broadcaster
        self._default_avatar = default_avatar
        self._subscription: Subscription | None = None

    def start(self) -> None:
        """Subscribe, painting the optimistic identity first if nothing is confirmed."""
        if self._broadcaster is None:
            logger.warning("No auth state broadcaster, showing signed-out view")
            self.page.body_classes.discard(CLASS_LOADING)
            return
        if not self._broadcaster.is_confirmed:
            optimistic = self._broadcaster.get_current()
            if optimistic is not None:
                self.render(optimistic)
        self._subscription = self._broadcaster.subscribe(self.render)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def render(self, identity: Identity | None) -> None:
        """Update every identity-dependent part of the page."""
        page = self.page
        signed_in = identity is not None
        page.body_classes.discard(CLASS_LOADING)
        page.body_classes.discard(CLASS_UNAUTHENTICATED if signed_in else CLASS_AUTHENTICATED)
        page.body_classes.add(CLASS_AUTHENTICATED if signed_in else CLASS_UNAUTHENTICATED)

        page.login_visible = not signed_in
        page.logout_visible = signed_in
        page.profile_visible = signed_in
        page.user_name = (identity.display_name or "User") if identity else ""
        page.user_email = (identity.email or "") if identity else ""
        page.avatar_url = (identity.photo_url if identity else None) or self._default_avatar

        for region in page.protected:
            _show(region, signed_in)
        for region in page.guest_only:
            _show(region, not signed_in)
