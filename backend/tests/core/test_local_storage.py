"""Tests for local key-value storage implementations."""
from collections.abc import Iterator

import pytest

from core.local_storage import (
    MemoryStorage,
    SqlLocalStorage,
    StorageQuotaError,
    StorageUnavailableError,
)


@pytest.fixture
def sql_storage(tmp_path) -> Iterator[SqlLocalStorage]:
    storage = SqlLocalStorage(f"sqlite:///{tmp_path / 'local.db'}")
    yield storage
    storage.close()


class TestMemoryStorage:
    def test__set_get_remove(self) -> None:
        """Items can be stored, read and removed."""
        storage = MemoryStorage()
        storage.set_item("a", "1")
        assert storage.get_item("a") == "1"
        storage.remove_item("a")
        assert storage.get_item("a") is None

    def test__remove__missing_key_is_noop(self) -> None:
        """Removing a missing key is a no-op."""
        MemoryStorage().remove_item("missing")

    def test__keys(self) -> None:
        """Keys lists every stored key."""
        storage = MemoryStorage()
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        assert sorted(storage.keys()) == ["a", "b"]

    def test__quota__rejects_oversized_write(self) -> None:
        """A write over the quota raises and stores nothing."""
        storage = MemoryStorage(quota_bytes=8)
        storage.set_item("k", "1234")
        with pytest.raises(StorageQuotaError):
            storage.set_item("k2", "123456")
        assert storage.get_item("k2") is None

    def test__quota__overwrite_counts_replacement_only(self) -> None:
        """Overwriting a key only counts the new value against the quota."""
        storage = MemoryStorage(quota_bytes=8)
        storage.set_item("k", "1234567")
        storage.set_item("k", "7654321")
        assert storage.get_item("k") == "7654321"

    def test__unavailable__every_call_raises(self) -> None:
        """Unavailable storage raises on every call."""
        storage = MemoryStorage()
        storage.available = False
        with pytest.raises(StorageUnavailableError):
            storage.get_item("a")
        with pytest.raises(StorageUnavailableError):
            storage.set_item("a", "1")
        with pytest.raises(StorageUnavailableError):
            storage.remove_item("a")
        with pytest.raises(StorageUnavailableError):
            storage.keys()


class TestSqlLocalStorage:
    def test__set_get_overwrite(self, sql_storage: SqlLocalStorage) -> None:
        """Writing a key again replaces its value."""
        sql_storage.set_item("a", "1")
        sql_storage.set_item("a", "2")
        assert sql_storage.get_item("a") == "2"
        assert sql_storage.keys() == ["a"]

    def test__get__missing_is_none(self, sql_storage: SqlLocalStorage) -> None:
        """Reading a missing key gives None."""
        assert sql_storage.get_item("missing") is None

    def test__remove(self, sql_storage: SqlLocalStorage) -> None:
        """Removed keys are gone."""
        sql_storage.set_item("a", "1")
        sql_storage.remove_item("a")
        assert sql_storage.get_item("a") is None

    def test__survives_reopen(self, tmp_path) -> None:
        """Values persist across instances over the same file."""
        url = f"sqlite:///{tmp_path / 'local.db'}"
        first = SqlLocalStorage(url)
        first.set_item("progress_lc_1", '"solved"')
        first.close()

        second = SqlLocalStorage(url)
        try:
            assert second.get_item("progress_lc_1") == '"solved"'
        finally:
            second.close()

    def test__unreachable_database_raises_storage_error(self, tmp_path) -> None:
        """A database that cannot be reached raises StorageError."""
        storage = SqlLocalStorage(f"sqlite:///{tmp_path / 'missing-dir' / 'local.db'}")
        try:
            with pytest.raises(StorageUnavailableError):
                storage.get_item("a")
        finally:
            storage.close()
