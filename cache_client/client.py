"""
Cache Client Module

The public entry point: CRUD operations against the cache server plus an
optional subscription to the server's cache-mutation events.
"""

import logging
from typing import Any, Optional

from .config.settings import ClientOptions
from .events.dispatcher import EventDispatcher, Observer
from .exceptions import DuplicateKeyError, KeyNotFoundError, NotInitializedError
from .network.connection import ConnectionDriver
from .network.subscription import SubscriptionLifecycle
from .protocol.commands import EventType, Operation, Request, Response

logger = logging.getLogger(__name__)


class CacheClient:
    """
    Client for a remote key-value cache server.

    Every CRUD call is a fresh round trip over its own connection; nothing
    is cached locally. Events are delivered over a second, long-lived
    connection once subscribe() has been called, and observers run on the
    background listener thread.

    If the server closes the notification connection the subscription ends
    silently and is_subscribed becomes False; it is not re-established.

    Usage:
        with CacheClient(ClientOptions(host="cache.local")) as client:
            client.on_item_added(lambda n: print("added", n.key))
            client.subscribe("user:*")
            client.add("user:1", {"name": "alice"}, expiration_seconds=60)
            client.get("user:1")

    Attributes:
        options: Connection options, fixed for the client's lifetime
        dispatcher: The EventDispatcher holding registered observers
    """

    def __init__(self, options: ClientOptions = None):
        self.options = options if options is not None else ClientOptions.from_settings()
        self.dispatcher = EventDispatcher()
        self._driver = ConnectionDriver(self.options)
        self._subscription = SubscriptionLifecycle(self.options, self.dispatcher)
        self._initialized = False

    def initialize(self) -> None:
        """Make the client usable. Operations before this raise NotInitializedError."""
        self._initialized = True

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_subscribed(self) -> bool:
        """True while the notification connection is open and alive."""
        return self._subscription.is_subscribed

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("Cache client is not initialized. Call initialize() first.")

    def send(
            self,
            operation: Operation,
            key: Optional[str] = None,
            value: Any = None,
            expiration_seconds: Optional[int] = None,
    ) -> Response:
        """
        Perform one request/response exchange with the server.

        Raises:
            NotInitializedError: If the client is not initialized
            ValueError: If key or expiration do not fit the operation
            CacheConnectionError, ProtocolError, RemoteError: See ConnectionDriver.send
        """
        self._require_initialized()
        request = Request(
            operation=operation,
            key=key,
            value=value,
            expiration_seconds=expiration_seconds,
        )
        return self._driver.send(request)

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------

    def add(self, key: str, value: Any, expiration_seconds: Optional[int] = None) -> None:
        """
        Create a new key.

        Raises:
            DuplicateKeyError: If the key already exists
        """
        response = self.send(Operation.CREATE, key, value, expiration_seconds)
        if not response.success:
            raise DuplicateKeyError(key)

    def get(self, key: str) -> Any:
        """Return the value stored under key, or None if the server has none."""
        return self.send(Operation.READ, key).value

    def update(self, key: str, value: Any, expiration_seconds: Optional[int] = None) -> None:
        """
        Replace the value of an existing key.

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        response = self.send(Operation.UPDATE, key, value, expiration_seconds)
        if not response.success:
            raise KeyNotFoundError(key)

    def remove(self, key: str) -> None:
        """Delete a key. Removing a missing key is not an error."""
        self.send(Operation.DELETE, key)

    def clear(self) -> None:
        """Delete every key on the server."""
        self.send(Operation.CLEAR)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, key_pattern: Optional[str] = None, *event_types: EventType) -> None:
        """
        Start receiving cache events.

        Args:
            key_pattern: Only report matching keys; a trailing '*' is a
                prefix match and None matches every key
            *event_types: Only report these event types (none = all)

        Raises:
            NotInitializedError: If the client is not initialized
            AlreadySubscribedError: If already subscribed
            CacheConnectionError: If the notification endpoint is unreachable
        """
        self._require_initialized()
        if isinstance(key_pattern, EventType):
            # subscribe(EventType.ItemAdded, ...) without a pattern
            event_types = (key_pattern,) + event_types
            key_pattern = None
        self._subscription.subscribe(key_pattern, event_types)

    def unsubscribe(self) -> None:
        """Stop receiving events. Does nothing when not subscribed."""
        self._subscription.unsubscribe()

    def notification_stats(self) -> dict:
        """Listener statistics of the current subscription (empty if none)."""
        channel = self._subscription.channel
        return channel.get_stats() if channel is not None else {}

    def add_listener(self, callback: Observer, event_type: Optional[EventType] = None) -> Observer:
        """Register an observer for event_type, or for every event if None."""
        return self.dispatcher.add_listener(callback, event_type)

    def remove_listener(self, callback: Observer, event_type: Optional[EventType] = None) -> bool:
        """Unregister an observer. Returns False if it was not registered."""
        return self.dispatcher.remove_listener(callback, event_type)

    def on_item_added(self, callback: Observer) -> Observer:
        return self.add_listener(callback, EventType.ItemAdded)

    def on_item_updated(self, callback: Observer) -> Observer:
        return self.add_listener(callback, EventType.ItemUpdated)

    def on_item_removed(self, callback: Observer) -> Observer:
        return self.add_listener(callback, EventType.ItemRemoved)

    def on_item_expired(self, callback: Observer) -> Observer:
        return self.add_listener(callback, EventType.ItemExpired)

    def on_item_evicted(self, callback: Observer) -> Observer:
        return self.add_listener(callback, EventType.ItemEvicted)

    def on_cache_event(self, callback: Observer) -> Observer:
        """Register a catch-all observer that receives every event."""
        return self.add_listener(callback, None)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Unsubscribe and return to the uninitialized state."""
        self._subscription.unsubscribe()
        self._initialized = False

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
