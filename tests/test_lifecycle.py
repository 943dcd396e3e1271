"""
Tests for the storage lifecycle manager.

The MongoDB client is replaced by a fake whose ping can be switched on and
off and whose databases are mongomock-motor databases.
"""

import asyncio
from types import SimpleNamespace

import pytest
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import ServerSelectionTimeoutError

from expenseai.config import Settings
from expenseai.services.storage import (
    InMemoryStorage,
    MongoStorage,
    MongoTopologyListener,
    StorageManager,
)

from conftest import make_expense


class FakeAdmin:
    def __init__(self, client):
        self._client = client

    async def command(self, name):
        self._client.pings += 1
        if not self._client.reachable:
            raise ServerSelectionTimeoutError("No servers available")
        return {"ok": 1.0}


class FakeMongoClient:
    def __init__(self, reachable=True):
        self._mock = AsyncMongoMockClient()
        self.admin = FakeAdmin(self)
        self.reachable = reachable
        self.pings = 0
        self.closed = False
        self.listeners = []

    def __getitem__(self, name):
        return self._mock[name]

    def close(self):
        self.closed = True


class FakeFactory:
    def __init__(self, client):
        self.client = client
        self.calls = 0

    def __call__(self, mongo_settings, listeners):
        self.calls += 1
        self.client.listeners = list(listeners)
        return self.client


def topology_event(was_readable: bool, is_readable: bool):
    return SimpleNamespace(
        previous_description=SimpleNamespace(has_readable_server=lambda: was_readable),
        new_description=SimpleNamespace(has_readable_server=lambda: is_readable),
    )


@pytest.fixture
def mongo_env(monkeypatch):
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("STORAGE_INITIAL_PROBE_DELAY_SECONDS", "0")
    monkeypatch.setenv("STORAGE_RETRY_INTERVAL_SECONDS", "0.01")
    monkeypatch.setenv("STORAGE_RETRY_WINDOW_SECONDS", "0.5")
    return Settings()


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestStartup:
    """Tests for the initial backend choice and probing."""

    async def test_starts_in_memory(self):
        manager = StorageManager(Settings())
        assert isinstance(manager.current(), InMemoryStorage)
        assert manager.backend_name == "memory"

    async def test_without_uri_stays_in_memory(self):
        """No URI means no client and no probing."""
        factory = FakeFactory(FakeMongoClient())
        manager = StorageManager(Settings(), client_factory=factory)
        await manager.start()
        assert factory.calls == 0
        assert manager.backend_name == "memory"
        await manager.stop()

    async def test_non_mongo_database_url_is_ignored(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://localhost/db")
        assert Settings().mongo.uri is None

    async def test_database_url_fallback(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "mongodb://db.internal:27017")
        assert Settings().mongo.uri == "mongodb://db.internal:27017"

    async def test_upgrades_when_ping_succeeds(self, mongo_env):
        client = FakeMongoClient(reachable=True)
        manager = StorageManager(mongo_env, client_factory=FakeFactory(client))
        await manager.start()

        await wait_until(lambda: manager.is_persistent)
        await manager.wait_for_background()

        assert manager.backend_name == "mongodb"
        assert len(await manager.current().get_categories()) == 8
        await manager.stop()
        assert client.closed

    async def test_upgrades_after_retries(self, mongo_env):
        client = FakeMongoClient(reachable=False)
        manager = StorageManager(mongo_env, client_factory=FakeFactory(client))
        await manager.start()

        await wait_until(lambda: client.pings >= 2)
        client.reachable = True
        await wait_until(lambda: manager.is_persistent)
        await manager.stop()

    async def test_abandons_after_window(self, mongo_env):
        """Probing stops for good once the retry window has elapsed."""
        client = FakeMongoClient(reachable=False)
        manager = StorageManager(mongo_env, client_factory=FakeFactory(client))
        await manager.start()

        await asyncio.wait_for(manager._probe_task, timeout=2.0)
        pings = client.pings
        assert pings >= 2
        assert manager.backend_name == "memory"

        await asyncio.sleep(0.05)
        assert client.pings == pings
        await manager.stop()


class TestSwaps:
    """Tests for upgrade/downgrade reference swaps."""

    async def _connected_manager(self, mongo_env) -> StorageManager:
        client = FakeMongoClient()
        manager = StorageManager(mongo_env, client_factory=FakeFactory(client))
        await manager.start()
        await wait_until(lambda: manager.is_persistent)
        await manager.wait_for_background()
        return manager

    async def test_upgrade_does_not_migrate_rows(self, mongo_env):
        """Rows written in memory are gone after the upgrade."""
        client = FakeMongoClient(reachable=False)
        manager = StorageManager(mongo_env, client_factory=FakeFactory(client))
        await manager.start()

        await manager.current().create_expense("u1", make_expense())
        assert len(await manager.current().get_expenses_by_user("u1")) == 1

        client.reachable = True
        await wait_until(lambda: manager.is_persistent)
        assert await manager.current().get_expenses_by_user("u1") == []
        await manager.stop()

    async def test_captured_reference_survives_swap(self, mongo_env):
        """An operation holding the old backend finishes against it."""
        client = FakeMongoClient(reachable=False)
        manager = StorageManager(mongo_env, client_factory=FakeFactory(client))
        await manager.start()

        captured = manager.current()
        await captured.create_expense("u1", make_expense(description="before"))

        client.reachable = True
        await wait_until(lambda: manager.is_persistent)

        await captured.create_expense("u1", make_expense(description="after"))
        assert len(await captured.get_expenses_by_user("u1")) == 2
        assert manager.current() is not captured
        await manager.stop()

    async def test_downgrade_on_lost_server(self, mongo_env):
        manager = await self._connected_manager(mongo_env)
        listener = manager._client.listeners[0]
        assert isinstance(listener, MongoTopologyListener)

        listener.description_changed(topology_event(was_readable=True, is_readable=False))
        await asyncio.sleep(0)

        assert isinstance(manager.current(), InMemoryStorage)
        assert manager.backend_name == "memory"
        await manager.stop()

    async def test_reconnect_upgrades_again(self, mongo_env):
        manager = await self._connected_manager(mongo_env)
        listener = manager._client.listeners[0]

        listener.description_changed(topology_event(True, False))
        await asyncio.sleep(0)
        listener.description_changed(topology_event(False, True))
        await asyncio.sleep(0)

        assert isinstance(manager.current(), MongoStorage)
        await manager.stop()

    async def test_unchanged_readability_is_ignored(self, mongo_env):
        manager = await self._connected_manager(mongo_env)
        backend = manager.current()
        manager._client.listeners[0].description_changed(topology_event(True, True))
        await asyncio.sleep(0)
        assert manager.current() is backend
        await manager.stop()

    async def test_swaps_are_idempotent(self, mongo_env):
        manager = await self._connected_manager(mongo_env)
        backend = manager.current()
        assert manager.upgrade() is False
        assert manager.current() is backend

        assert manager.downgrade() is True
        memory = manager.current()
        assert manager.downgrade() is False
        assert manager.current() is memory
        await manager.stop()

    async def test_upgrade_without_client_is_noop(self):
        manager = StorageManager(Settings())
        assert manager.upgrade() is False
        assert manager.backend_name == "memory"
