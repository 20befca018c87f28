"""
Content gating: turns the current identity into page effects and guards protected actions.

The page is modelled with two small objects: Region (a block of content that can
be obscured behind a sign-in overlay) and Control (an interactive element with an
ordered list of activation handlers). The sign-in prompt and navigation are
injected collaborators.

Access decisions only ever use the identity confirmed by the auth provider; the
optimistic session-cache identity never grants access.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from core.auth_state import AuthStateBroadcaster, Identity, Subscription

logger = logging.getLogger(__name__)


class SignInPrompt(Protocol):
    """Sign-in UI. Calls must not block the caller."""

    def show(self, message: str | None = None) -> None: ...

    def hide(self) -> None: ...

    def show_error(self, message: str) -> None: ...

    def clear_error(self) -> None: ...


class Navigator(Protocol):
    """Moves the page to another location."""

    def navigate(self, url: str) -> None: ...


@dataclass
class PromptState:
    """In-process sign-in prompt that records what it was asked to show."""

    visible: bool = False
    message: str | None = None
    error: str | None = None
    times_shown: int = 0

    def show(self, message: str | None = None) -> None:
        self.visible = True
        self.message = message
        self.times_shown += 1

    def hide(self) -> None:
        self.visible = False
        self.message = None

    def show_error(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None


@dataclass
class RecordingNavigator:
    """Navigator that records requested locations."""

    history: list[str] = field(default_factory=list)

    def navigate(self, url: str) -> None:
        self.history.append(url)

    @property
    def location(self) -> str | None:
        """Most recently requested location."""
        return self.history[-1] if self.history else None


@dataclass
class GateOptions:
    """Overlay content and look for a gated region."""

    title: str = "Sign in to access this content"
    description: str = "Create a free account to unlock all features"
    button_text: str = "Sign In"
    blur_amount: str = "8px"
    overlay_class: str = "auth-content-gate"


@dataclass
class GateState:
    """An active gate on a region."""

    options: GateOptions
    subscription: Subscription | None = None


@dataclass
class Region:
    """A block of page content."""

    name: str
    classes: set[str] = field(default_factory=set)
    attributes: dict[str, str] = field(default_factory=dict)
    blur: str | None = None
    gate: GateState | None = None

    @property
    def is_gated(self) -> bool:
        return self.gate is not None


@dataclass
class ActionEvent:
    """Activation of a Control, passed to each handler."""

    control: "Control"
    default_prevented: bool = False
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


Handler = Callable[[ActionEvent], object]


@dataclass
class Control:
    """An interactive element (button, link) with handlers run in order on activation."""

    name: str
    handlers: list[Handler] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)

    def add_handler(self, handler: Handler) -> None:
        self.handlers.append(handler)

    def activate(self) -> ActionEvent:
        """Run handlers in order until one stops propagation."""
        event = ActionEvent(control=self)
        for handler in list(self.handlers):
            handler(event)
            if event.propagation_stopped:
                break
        return event


class ContentGateController:
    """
    Guards regions and actions behind a confirmed identity.

    Tolerates a missing broadcaster (auth not loaded yet): every operation logs a
    warning and behaves as if nobody is signed in.
    """

    def __init__(
        self,
        broadcaster: AuthStateBroadcaster | None,
        prompt: SignInPrompt,
        navigator: Navigator,
        protected_redirect: str | None = None,
    ) -> None:
        self._broadcaster = broadcaster
        self._prompt = prompt
        self._navigator = navigator
        self._protected_redirect = protected_redirect

    def _identity(self) -> Identity | None:
        if self._broadcaster is None:
            logger.warning("No auth state broadcaster, treating user as signed out")
            return None
        return self._broadcaster.confirmed_identity()

    def require_access(
        self,
        action: str | None = None,
        message: str | None = None,
        redirect_to: str | None = None,
        show_prompt: bool = True,
    ) -> bool:
        """
        True if a confirmed identity is present.

        Otherwise navigates to the redirect target when one is configured, or shows
        the sign-in prompt (with message), and returns False. Never raises.
        """
        try:
            if self._identity() is not None:
                return True
            target = redirect_to or self._protected_redirect
            if target:
                self._navigator.navigate(target)
            elif show_prompt:
                self._prompt.show(message)
            logger.info("Access denied for %s (redirect: %s)", action, target or "none")
        except Exception:
            logger.exception("Access check for %s failed", action)
        return False

    def gate(self, region: Region, options: GateOptions | None = None) -> Callable[[], None]:
        """
        Obscure region behind a sign-in overlay until someone signs in.

        Does nothing if a confirmed identity is already present. The gate removes
        itself on the next present identity, exactly once. Returns a callable that
        removes it manually.
        """
        options = options or GateOptions()
        if self._identity() is not None or region.is_gated:
            return lambda: self.ungate(region)

        region.blur = options.blur_amount
        region.classes.add(options.overlay_class)
        region.attributes["aria-hidden"] = "true"
        state = GateState(options=options)
        region.gate = state

        if self._broadcaster is not None:
            def on_identity(identity: Identity | None) -> None:
                if identity is not None and region.gate is state:
                    self.ungate(region)

            state.subscription = self._broadcaster.subscribe(on_identity)
        return lambda: self.ungate(region)

    def ungate(self, region: Region) -> None:
        """Remove a gate and restore the region; no-op if not gated."""
        state = region.gate
        if state is None:
            return
        region.gate = None
        region.blur = None
        region.classes.discard(state.options.overlay_class)
        region.attributes.pop("aria-hidden", None)
        if state.subscription is not None:
            state.subscription.cancel()
        logger.info("Removed content gate from %s", region.name)

    def protect(self, control: Control, message: str | None = None) -> Callable[[], None]:
        """
        Guard a control's activation behind require_access.

        Handlers attached before protect() run only after a successful check; a
        failed check prevents the default action and stops propagation. Returns a
        callable that restores the original handlers.
        """
        original = list(control.handlers)

        def guard(event: ActionEvent) -> None:
            if not self.require_access(action=control.name, message=message):
                event.prevent_default()
                event.stop_propagation()
                return
            for handler in original:
                handler(event)
                if event.propagation_stopped:
                    return

        control.handlers = [guard]
        control.attributes["data-protected"] = "true"

        def unprotect() -> None:
            if guard in control.handlers:
                index = control.handlers.index(guard)
                control.handlers[index:index + 1] = original
            control.attributes.pop("data-protected", None)

        return unprotect
