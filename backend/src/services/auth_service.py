"""Sign-in/sign-out flow around the auth provider."""
import logging

from core.auth_provider import AuthProvider, map_auth_error
from core.auth_state import AuthProviderTag, AuthStateBroadcaster, Identity
from core.config import Settings
from core.content_gate import Navigator, SignInPrompt

logger = logging.getLogger(__name__)


class AuthService:
    """
    Connects the provider to the broadcaster and drives the sign-in prompt.

    Provider failures are never raised to the caller: they are mapped to a
    user-facing message shown in the prompt, and the page stays signed out.
    """

    def __init__(
        self,
        provider: AuthProvider,
        broadcaster: AuthStateBroadcaster,
        prompt: SignInPrompt,
        navigator: Navigator,
        settings: Settings,
    ) -> None:
        self._provider = provider
        self._broadcaster = broadcaster
        self._prompt = prompt
        self._navigator = navigator
        self._settings = settings

    def start(self) -> None:
        """Route every provider identity change into the broadcaster."""
        self._provider.on_identity_changed(self._broadcaster.set_identity)

    async def sign_in(self, provider: AuthProviderTag) -> Identity | None:
        """Sign in; returns the identity, or None after showing the error in the prompt."""
        self._prompt.clear_error()
        try:
            identity = await self._provider.sign_in(provider)
        except Exception as e:
            error = map_auth_error(e)
            logger.warning("Sign-in with %s failed: %s", provider.value, error.code)
            self._prompt.show_error(error.message)
            return None
        logger.info("User %s signed in with %s", identity.uid, provider.value)
        self._prompt.hide()
        if self._settings.login_redirect:
            self._navigator.navigate(self._settings.login_redirect)
        return identity

    async def sign_out(self) -> bool:
        """Sign out; returns False (and logs) on failure."""
        try:
            await self._provider.sign_out()
        except Exception as e:
            error = map_auth_error(e)
            logger.warning("Sign-out failed: %s", error.code)
            return False
        if self._settings.logout_redirect:
            self._navigator.navigate(self._settings.logout_redirect)
        return True
