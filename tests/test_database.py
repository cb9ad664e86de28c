"""
Tests for the MongoDB connection manager.

The driver is replaced by a fake client factory, so no server is needed.
"""

import asyncio
import time

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from database import (
    FALLBACK_STATUS,
    ConnectionManager,
    ConnectionState,
    DatabaseUnavailableError,
    _TopologyWatcher,
)


class FakeAdmin:
    def __init__(self, behaviour):
        self.behaviour = behaviour

    async def command(self, name):
        assert name == "ping"
        if self.behaviour == "ok":
            return {"ok": 1}
        if self.behaviour == "hang":
            await asyncio.sleep(60)
        raise ServerSelectionTimeoutError("no servers found")


class FakeClient:
    def __init__(self, uri, behaviour, **options):
        self.uri = uri
        self.options = options
        self.admin = FakeAdmin(behaviour)
        self.closed = False

    async def close(self):
        self.closed = True

    def get_default_database(self, default=None):
        return {"name": default}


class FakeClientFactory:
    def __init__(self, behaviour="ok"):
        self.behaviour = behaviour
        self.clients = []

    def __call__(self, uri, **options):
        client = FakeClient(uri, self.behaviour, **options)
        self.clients.append(client)
        return client


def make_manager(factory, uri="mongodb://db.example:27017/portfolio", **overrides):
    options = dict(
        uri=uri,
        database_name="portfolio",
        max_connect_attempts=2,
        connection_timeout_ms=500,
        retry_base_delay_ms=10,
        client_options={},
        client_factory=factory,
    )
    options.update(overrides)
    return ConnectionManager(**options)


class TestConnect:

    @pytest.mark.asyncio
    async def test_successful_connect(self):
        factory = FakeClientFactory("ok")
        manager = make_manager(factory)
        assert manager.get_status() == "Uninitialized"

        assert await manager.connect() is True
        assert manager.state is ConnectionState.CONNECTED
        assert manager.has_active_connection()
        assert not manager.is_using_fallback()
        assert manager.get_database() == {"name": "portfolio"}

        listeners = factory.clients[0].options["event_listeners"]
        assert isinstance(listeners[0], _TopologyWatcher)

    @pytest.mark.asyncio
    async def test_second_connect_reuses_client(self):
        factory = FakeClientFactory("ok")
        manager = make_manager(factory)
        await manager.connect()
        assert await manager.connect() is True
        assert len(factory.clients) == 1

    @pytest.mark.asyncio
    async def test_unreachable_server_gives_up_within_bound(self):
        factory = FakeClientFactory("hang")
        manager = make_manager(factory)

        started = time.monotonic()
        assert await manager.connect() is False
        elapsed = time.monotonic() - started

        # two 500ms attempts plus a 10ms backoff
        assert elapsed < 2.0
        assert len(factory.clients) == 2
        assert all(client.closed for client in factory.clients)
        assert manager.is_using_fallback()
        assert manager.get_status() == FALLBACK_STATUS
        assert not manager.has_active_connection()

    @pytest.mark.asyncio
    async def test_driver_error_counts_as_failed_attempt(self):
        factory = FakeClientFactory("fail")
        manager = make_manager(factory, max_connect_attempts=3)

        assert await manager.connect() is False
        assert len(factory.clients) == 3
        assert manager.is_using_fallback()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("uri", [None, "", "your_mongodb_connection_string_here"])
    async def test_missing_uri_goes_straight_to_fallback(self, uri):
        factory = FakeClientFactory("ok")
        manager = make_manager(factory, uri=uri)

        assert await manager.connect() is False
        assert factory.clients == []
        assert manager.get_status() == FALLBACK_STATUS

    @pytest.mark.asyncio
    async def test_successful_reconnect_clears_fallback(self):
        factory = FakeClientFactory("fail")
        manager = make_manager(factory, max_connect_attempts=1)
        assert await manager.connect() is False
        assert manager.is_using_fallback()

        factory.behaviour = "ok"
        assert await manager.connect() is True
        assert not manager.is_using_fallback()
        assert manager.get_status() == "Connected"


class TestClose:

    @pytest.mark.asyncio
    async def test_close_is_noop_in_fallback(self):
        manager = make_manager(FakeClientFactory("ok"), uri=None)
        await manager.connect()
        await manager.close()
        assert manager.get_status() == FALLBACK_STATUS

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        factory = FakeClientFactory("ok")
        manager = make_manager(factory)
        await manager.connect()

        await manager.close()
        assert factory.clients[0].closed
        assert manager.state is ConnectionState.DISCONNECTED
        with pytest.raises(DatabaseUnavailableError):
            manager.get_database()


class TestStatus:

    def test_status_report_shape(self):
        manager = make_manager(FakeClientFactory())
        report = manager.status_report()
        assert report["status"] == "Uninitialized"
        assert report["usingFallback"] is False
        assert isinstance(report["connectionTime"], str)

    def test_database_unavailable_before_connect(self):
        with pytest.raises(DatabaseUnavailableError):
            make_manager(FakeClientFactory()).get_database()

    @pytest.mark.asyncio
    async def test_topology_changes_update_state(self):
        manager = make_manager(FakeClientFactory("ok"))
        await manager.connect()

        manager._on_topology_changed(False)
        assert manager.get_status() == "Disconnected"
        assert not manager.has_active_connection()

        manager._on_topology_changed(True)
        assert manager.get_status() == "Connected"

    @pytest.mark.asyncio
    async def test_topology_changes_ignored_in_fallback(self):
        manager = make_manager(FakeClientFactory("fail"), max_connect_attempts=1)
        await manager.connect()

        manager._on_topology_changed(True)
        assert manager.get_status() == FALLBACK_STATUS
