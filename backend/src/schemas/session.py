"""Session cache projection of the last known identity."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from core.auth_state import AuthProviderTag, Identity


class SessionEntry(BaseModel):
    """
    Minimal, possibly stale copy of an Identity persisted for first paint.

    Never authoritative: it may lag the provider, so nothing may use it to
    authorize a protected action.
    """

    model_config = ConfigDict(extra="ignore")

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    email_verified: bool = False
    provider: str = AuthProviderTag.UNKNOWN.value
    last_login_at: datetime

    @classmethod
    def from_identity(cls, identity: Identity, last_login_at: datetime) -> "SessionEntry":
        """Project an Identity onto the cached fields."""
        return cls(
            uid=identity.uid,
            email=identity.email,
            display_name=identity.display_name,
            photo_url=identity.photo_url,
            email_verified=identity.email_verified,
            provider=identity.provider.value,
            last_login_at=last_login_at,
        )

    def to_identity(self) -> Identity:
        """Rebuild an optimistic Identity for rendering."""
        return Identity(
            uid=self.uid,
            display_name=self.display_name,
            email=self.email,
            email_verified=self.email_verified,
            photo_url=self.photo_url,
            provider=AuthProviderTag.parse(self.provider),
        )
