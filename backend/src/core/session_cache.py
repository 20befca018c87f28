"""Best-effort durable mirror of the last known identity."""
import logging
from datetime import UTC, datetime

from pydantic import ValidationError

from core.auth_state import Identity
from core.local_storage import LocalStorage, StorageError
from schemas.session import SessionEntry

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "mlinterviewpro_user_session"


class SessionCache:
    """
    Reads and writes the session entry in local storage.

    All storage failures are logged and swallowed; a corrupt or unreadable entry
    reads as absent. A failed write removes the previous entry, so a read never
    returns an identity older than the last one written.
    """

    def __init__(self, storage: LocalStorage, key: str = DEFAULT_SESSION_KEY) -> None:
        self._storage = storage
        self._key = key

    def write(self, identity: Identity) -> None:
        """Persist the projection of identity, stamped with the current time."""
        entry = SessionEntry.from_identity(identity, last_login_at=datetime.now(UTC))
        try:
            self._storage.set_item(self._key, entry.model_dump_json())
        except StorageError as e:
            logger.warning("Session cache write failed for %s: %s", identity.uid, e)
            self.clear()

    def clear(self) -> None:
        """Remove the entry."""
        try:
            self._storage.remove_item(self._key)
        except StorageError as e:
            logger.warning("Session cache clear failed: %s", e)

    def read(self) -> SessionEntry | None:
        """Return the last written entry, or None if missing, unreadable or corrupt."""
        try:
            raw = self._storage.get_item(self._key)
        except StorageError as e:
            logger.warning("Session cache read failed: %s", e)
            return None
        if raw is None:
            return None
        try:
            return SessionEntry.model_validate_json(raw)
        except ValidationError:
            logger.warning("Session cache entry under %s is corrupt, ignoring it", self._key)
            return None
