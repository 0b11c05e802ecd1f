"""
Tests for the CacheClient Facade

These tests verify the public client API:
- Initialization gate
- CRUD operations and their error refinements
- Observer registration helpers and subscribe() argument handling
- Options and settings

Run with: python -m pytest tests/test_client.py -v
"""

import pytest

from cache_client import (
    AlreadySubscribedError,
    CacheClient,
    CacheClientError,
    ClientOptions,
    DuplicateKeyError,
    EventType,
    KeyNotFoundError,
    NotInitializedError,
    RemoteError,
)
from cache_client.config.settings import Settings


class TestInitialization:
    """Test the initialized/uninitialized gate."""

    def test_operations_require_initialize(self, options):
        """Test CRUD and subscribe fail before initialize()."""
        cache = CacheClient(options)

        assert cache.is_initialized is False
        for call in (
            lambda: cache.add("k", 1),
            lambda: cache.get("k"),
            lambda: cache.update("k", 1),
            lambda: cache.remove("k"),
            lambda: cache.clear(),
            lambda: cache.subscribe(),
        ):
            with pytest.raises(NotInitializedError):
                call()

    def test_uninitialized_makes_no_request(self, options, cache_server):
        """Test the gate is checked before connecting."""
        with pytest.raises(NotInitializedError):
            CacheClient(options).get("k")
        assert cache_server.requests == []

    def test_close_uninitializes(self, client):
        """Test close() returns the client to the uninitialized state."""
        client.close()

        assert client.is_initialized is False
        with pytest.raises(NotInitializedError):
            client.get("k")

    def test_context_manager(self, options, cache_server):
        """Test with-block initializes and closes."""
        with CacheClient(options) as cache:
            assert cache.is_initialized is True
            cache.add("k", "v")
            cache.subscribe()
            assert cache.is_subscribed is True

        assert cache.is_initialized is False
        assert cache.is_subscribed is False

    def test_not_initialized_is_client_error(self):
        """Test every client error shares the base class."""
        assert issubclass(NotInitializedError, CacheClientError)
        assert issubclass(DuplicateKeyError, RemoteError)
        assert issubclass(KeyNotFoundError, RemoteError)


class TestCrud:
    """Test CRUD operations against the fake server."""

    def test_create_then_read(self, client):
        """Test a created value reads back unchanged."""
        client.add("user:1", {"name": "alice", "tags": ["a", "b"]})
        assert client.get("user:1") == {"name": "alice", "tags": ["a", "b"]}

    @pytest.mark.parametrize("value", [0, -1.5, "text", "", True, None, [1, [2]], {"nested": {"x": None}}])
    def test_round_trip_values(self, client, value):
        """Test JSON values of every kind round-trip."""
        client.add("key", value)
        assert client.get("key") == value

    def test_read_missing(self, client):
        """Test reading an unknown key returns None."""
        assert client.get("missing") is None

    def test_create_duplicate(self, client):
        """Test CREATE on an existing key fails and keeps the old value."""
        client.add("k", "original")

        with pytest.raises(DuplicateKeyError) as excinfo:
            client.add("k", "replacement")

        assert excinfo.value.key == "k"
        assert client.get("k") == "original"

    def test_update_existing(self, client):
        """Test UPDATE replaces the value."""
        client.add("k", 1)
        client.update("k", 2)
        assert client.get("k") == 2

    def test_update_missing(self, client):
        """Test UPDATE on an unknown key raises KeyNotFoundError."""
        with pytest.raises(KeyNotFoundError) as excinfo:
            client.update("ghost", 1)

        assert excinfo.value.key == "ghost"
        assert client.get("ghost") is None

    def test_remove(self, client):
        """Test DELETE removes the key, and removing again is harmless."""
        client.add("k", 1)
        client.remove("k")
        client.remove("k")
        assert client.get("k") is None

    def test_clear(self, client):
        """Test CLEAR removes every key."""
        client.add("a", 1)
        client.add("b", 2)
        client.clear()

        assert client.get("a") is None
        assert client.get("b") is None

    def test_expiration_is_sent(self, client, cache_server):
        """Test expiration_seconds reaches the server."""
        client.add("k", 1, expiration_seconds=30)
        client.update("k", 2, expiration_seconds=0)

        assert [r["ExpirationSeconds"] for r in cache_server.requests] == [30, 0]

    def test_remote_error(self, client, cache_server):
        """Test a server-side error surfaces as RemoteError."""
        cache_server.forced_error = "server is read-only"

        with pytest.raises(RemoteError, match="read-only") as excinfo:
            client.add("k", 1)

        assert not isinstance(excinfo.value, DuplicateKeyError)

    def test_invalid_arguments(self, client, cache_server):
        """Test invalid keys and expirations are rejected locally."""
        with pytest.raises(ValueError):
            client.add("", 1)
        with pytest.raises(ValueError):
            client.add("k", 1, expiration_seconds=-5)

        assert cache_server.requests == []


class TestObservers:
    """Test observer registration through the client."""

    def test_helpers_register_per_type(self, options):
        """Test on_item_* helpers register in the right bucket."""
        cache = CacheClient(options)

        def observer(notification):
            pass

        assert cache.on_item_added(observer) is observer
        cache.on_item_updated(observer)
        cache.on_item_removed(observer)
        cache.on_item_expired(observer)
        cache.on_item_evicted(observer)
        cache.on_cache_event(observer)

        for event_type in EventType:
            assert cache.dispatcher.listener_count(event_type) == 1
        assert cache.dispatcher.listener_count() == 1

        assert cache.remove_listener(observer, EventType.ItemAdded) is True
        assert cache.dispatcher.listener_count(EventType.ItemAdded) == 0

    def test_subscribe_with_event_types_only(self, client, cache_server):
        """Test subscribe(EventType...) without a pattern."""
        client.subscribe(EventType.ItemAdded, EventType.ItemExpired)
        assert cache_server.wait_for_subscribers(1)

        request = cache_server.subscribe_requests[0]
        assert request["KeyPattern"] is None
        assert request["SubscribedEventTypes"] == ["ItemAdded", "ItemExpired"]

    def test_subscribe_twice(self, client, cache_server):
        """Test the second subscribe raises AlreadySubscribedError."""
        client.subscribe("a*")
        with pytest.raises(AlreadySubscribedError):
            client.subscribe("b*")

    def test_notification_stats(self, client, cache_server):
        """Test stats are empty without a subscription."""
        assert client.notification_stats() == {}

        client.subscribe()
        stats = client.notification_stats()

        assert stats["connected"] is True
        assert stats["events_dispatched"] == 0


class TestOptions:
    """Test ClientOptions validation and defaults."""

    def test_defaults(self):
        """Test defaults come from settings."""
        options = ClientOptions()

        assert options.port == Settings.PORT
        assert options.notification_port == Settings.NOTIFICATION_PORT
        assert options.timeout_milliseconds == Settings.TIMEOUT_MILLISECONDS

    def test_timeout_seconds(self):
        """Test the millisecond timeout converts to seconds."""
        assert ClientOptions(timeout_milliseconds=1500).timeout_seconds == 1.5

    @pytest.mark.parametrize("kwargs", [
        {"host": ""},
        {"port": 0},
        {"port": 70000},
        {"notification_port": -1},
        {"timeout_milliseconds": 0},
        {"timeout_milliseconds": 2.5},
    ])
    def test_invalid(self, kwargs):
        """Test invalid options are rejected."""
        with pytest.raises(ValueError):
            ClientOptions(**kwargs)

    def test_immutable(self):
        """Test options cannot be changed after construction."""
        options = ClientOptions()
        with pytest.raises(AttributeError):
            options.port = 1

    def test_from_settings(self):
        """Test options built from a Settings instance."""
        source = Settings(HOST="cache.internal", PORT=7000, NOTIFICATION_PORT=7001, TIMEOUT_MILLISECONDS=250)
        options = ClientOptions.from_settings(source)

        assert options == ClientOptions("cache.internal", 7000, 7001, 250)
