"""Tests for the key-value storage layer."""

import pytest
import pytest_asyncio

from linkshield.config import DatabaseSettings
from linkshield.scanner.whitelist import UserWhitelist
from linkshield.storage import (
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    StorageError,
    create_key_value_store,
)
from linkshield.storage.sqlite import to_async_url


@pytest.mark.parametrize(
    "url,expected",
    [
        ("sqlite:///./data/linkshield.db", "sqlite+aiosqlite:///./data/linkshield.db"),
        ("sqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ("sqlite+aiosqlite:///x.db", "sqlite+aiosqlite:///x.db"),
        ("postgresql+asyncpg://db/app", "postgresql+asyncpg://db/app"),
    ],
)
def test_to_async_url(url, expected):
    assert to_async_url(url) == expected


@pytest_asyncio.fixture
async def sqlite_store():
    store = SQLiteKeyValueStore(DatabaseSettings(url="sqlite:///:memory:"))
    await store.setup()
    yield store
    await store.cleanup()


class TestSQLiteKeyValueStore:
    @pytest.mark.asyncio
    async def test_entry_round_trip(self, sqlite_store):
        assert await sqlite_store.get_entry("linkStatusCache", "https://a.example/") is None

        await sqlite_store.put_entry(
            "linkStatusCache", "https://a.example/", {"kind": "link", "status": "live"}, 100.0
        )
        entry = await sqlite_store.get_entry("linkStatusCache", "https://a.example/")

        assert entry.payload == {"kind": "link", "status": "live"}
        assert entry.timestamp == 100.0

    @pytest.mark.asyncio
    async def test_put_replaces_entry(self, sqlite_store):
        await sqlite_store.put_entry("ns", "k", {"v": 1}, 1.0)
        await sqlite_store.put_entry("ns", "k", {"v": 2}, 2.0)

        entry = await sqlite_store.get_entry("ns", "k")
        assert entry.payload == {"v": 2}
        assert await sqlite_store.count_entries("ns") == 1

    @pytest.mark.asyncio
    async def test_namespaces_are_independent(self, sqlite_store):
        await sqlite_store.put_entry("links", "k1", {"v": 1}, 1.0)
        await sqlite_store.put_entry("links", "k2", {"v": 2}, 1.0)
        await sqlite_store.put_entry("safety", "k1", {"v": 3}, 1.0)

        assert await sqlite_store.clear_namespace("links") == 2
        assert await sqlite_store.count_entries("links") == 0
        assert await sqlite_store.count_entries("safety") == 1

    @pytest.mark.asyncio
    async def test_state_values(self, sqlite_store):
        assert await sqlite_store.get_value("blocklistLastUpdate") is None

        await sqlite_store.set_value("blocklistLastUpdate", 1700000000.5)
        await sqlite_store.set_value("whitelistedHosts", ["a.example", "b.example"])

        assert await sqlite_store.get_value("blocklistLastUpdate") == 1700000000.5
        assert await sqlite_store.get_value("whitelistedHosts") == ["a.example", "b.example"]

        await sqlite_store.delete_value("whitelistedHosts")
        assert await sqlite_store.get_value("whitelistedHosts") is None

    @pytest.mark.asyncio
    async def test_health_check(self, sqlite_store):
        assert await sqlite_store.db_manager.health_check() is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "operation",
        [
            lambda store: store.get_entry("linkStatusCache", "https://a.example/"),
            lambda store: store.put_entry("linkStatusCache", "https://a.example/", {}, 1.0),
            lambda store: store.clear_namespace("linkStatusCache"),
            lambda store: store.count_entries("linkStatusCache"),
            lambda store: store.get_value("whitelistedHosts"),
            lambda store: store.set_value("whitelistedHosts", []),
            lambda store: store.delete_value("whitelistedHosts"),
        ],
    )
    async def test_driver_errors_raise_storage_error(self, operation):
        store = SQLiteKeyValueStore(DatabaseSettings(url="sqlite:///:memory:"))
        with pytest.raises(StorageError):
            await operation(store)

    @pytest.mark.asyncio
    async def test_whitelist_falls_back_to_seed_when_store_fails(self):
        store = SQLiteKeyValueStore(DatabaseSettings(url="sqlite:///:memory:"))
        whitelist = UserWhitelist(store, seed=["docs.example"])
        assert await whitelist.list_hosts() == ["docs.example"]


class TestMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_payloads_are_copied(self):
        store = MemoryKeyValueStore()
        payload = {"sources": ["a"]}
        await store.put_entry("ns", "k", payload, 1.0)
        payload["sources"].append("b")

        entry = await store.get_entry("ns", "k")
        entry.payload["sources"].append("c")

        assert (await store.get_entry("ns", "k")).payload == {"sources": ["a"]}

    @pytest.mark.asyncio
    async def test_clear_missing_namespace(self):
        assert await MemoryKeyValueStore().clear_namespace("nothing") == 0


@pytest.mark.asyncio
async def test_create_store_ephemeral():
    store = await create_key_value_store(DatabaseSettings(), ephemeral=True)
    assert isinstance(store, MemoryKeyValueStore)


@pytest.mark.asyncio
async def test_create_store_sqlite(tmp_path):
    settings = DatabaseSettings(url=f"sqlite:///{tmp_path}/nested/linkshield.db")
    store = await create_key_value_store(settings)
    try:
        assert isinstance(store, SQLiteKeyValueStore)
        await store.set_value("key", {"a": 1})
        assert await store.get_value("key") == {"a": 1}
        assert (tmp_path / "nested" / "linkshield.db").exists()
    finally:
        await store.cleanup()
