"""Auth provider interface and mapping of provider error codes to user-facing messages."""
from collections.abc import Callable
from typing import Protocol

from core.auth_state import AuthProviderTag, Identity

GENERIC_AUTH_ERROR_MESSAGE = "An error occurred during authentication."

AUTH_ERROR_MESSAGES: dict[str, str] = {
    "auth/popup-closed-by-user": "Sign-in was cancelled. Please try again.",
    "auth/popup-blocked": "Sign-in popup was blocked. Please allow popups for this site.",
    "auth/cancelled-popup-request": "Sign-in was cancelled.",
    "auth/network-request-failed": "Network error. Please check your connection.",
    "auth/too-many-requests": "Too many attempts. Please try again later.",
    "auth/user-disabled": "This account has been disabled.",
    "auth/account-exists-with-different-credential": (
        "An account already exists with the same email but different sign-in credentials."
    ),
    "auth/auth-domain-config-required": "Authentication domain not configured.",
    "auth/operation-not-allowed": "This sign-in method is not enabled.",
    "auth/unauthorized-domain": "This domain is not authorized for sign-in.",
    "auth/invalid-api-key": "Invalid API key. Please check the auth provider configuration.",
}


class AuthProviderError(Exception):
    """Failure reported by an auth provider, tagged with a provider-defined code."""

    def __init__(self, code: str | None, message: str = "") -> None:
        self.code = code
        super().__init__(message or code or "auth provider error")


class AuthError(Exception):
    """Provider failure translated to a message safe to show the user."""

    def __init__(self, message: str, code: str | None, original: Exception | None = None) -> None:
        self.message = message
        self.code = code
        self.original = original
        super().__init__(message)


def map_auth_error(error: Exception) -> AuthError:
    """Translate any sign-in/sign-out failure; unknown codes get the generic message."""
    code = getattr(error, "code", None)
    message = AUTH_ERROR_MESSAGES.get(code or "", GENERIC_AUTH_ERROR_MESSAGE)
    return AuthError(message, code=code, original=error)


class AuthProvider(Protocol):
    """External identity provider (the vendor SDK)."""

    def on_identity_changed(self, callback: Callable[[Identity | None], object]) -> object:
        """Register callback for every identity change the provider observes."""
        ...

    async def sign_in(self, provider: AuthProviderTag) -> Identity:
        """Sign in with the given provider; raises AuthProviderError on failure."""
        ...

    async def sign_out(self) -> None:
        """Sign out; raises AuthProviderError on failure."""
        ...
