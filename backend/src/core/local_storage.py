"""
Synchronous key-value storage for page-local state.

Plays the role browser localStorage plays for the site: the session cache and the
anonymous progress ledger live here. Every implementation raises StorageError
(or a subclass) on failure; callers catch it and degrade, they never crash.
"""
import logging
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base error for local storage failures."""


class StorageUnavailableError(StorageError):
    """Raised when the backing store cannot be reached."""


class StorageQuotaError(StorageError):
    """Raised when a write would exceed the storage quota."""


class LocalStorage(Protocol):
    """Minimal synchronous key-value interface."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStorage:
    """
    Dict-backed storage.

    quota_bytes caps the total size of keys plus values (None = unlimited).
    Setting available to False makes every call raise StorageUnavailableError,
    which is how tests simulate a disabled or broken store.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.available = True

    def _check_available(self) -> None:
        if not self.available:
            raise StorageUnavailableError("storage unavailable")

    def _size_with(self, key: str, value: str) -> int:
        size = sum(len(k) + len(v) for k, v in self._items.items() if k != key)
        return size + len(key) + len(value)

    def get_item(self, key: str) -> str | None:
        self._check_available()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_available()
        if self.quota_bytes is not None and self._size_with(key, value) > self.quota_bytes:
            raise StorageQuotaError(f"quota of {self.quota_bytes} bytes exceeded writing '{key}'")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._check_available()
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        self._check_available()
        return list(self._items)


_metadata = MetaData()

storage_items = Table(
    "storage_items",
    _metadata,
    Column("key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
)


class SqlLocalStorage:
    """Durable storage in a SQLite database file."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url)
        try:
            _metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            # Still constructible; every call will surface the failure.
            logger.warning("Local storage table could not be created: %s", e)

    def get_item(self, key: str) -> str | None:
        try:
            with self._engine.connect() as conn:
                return conn.execute(
                    select(storage_items.c.value).where(storage_items.c.key == key),
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(str(e)) from e

    def set_item(self, key: str, value: str) -> None:
        stmt = sqlite_insert(storage_items).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[storage_items.c.key], set_={"value": value},
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(str(e)) from e

    def remove_item(self, key: str) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(delete(storage_items).where(storage_items.c.key == key))
        except SQLAlchemyError as e:
            raise StorageUnavailableError(str(e)) from e

    def keys(self) -> list[str]:
        try:
            with self._engine.connect() as conn:
                return list(conn.execute(select(storage_items.c.key)).scalars())
        except SQLAlchemyError as e:
            raise StorageUnavailableError(str(e)) from e

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self._engine.dispose()
