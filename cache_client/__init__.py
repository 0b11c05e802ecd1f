"""
Cache Client: Network Client for a Remote Key-Value Cache

CRUD operations over short-lived TCP connections, plus an optional
push-notification stream of cache-mutation events.
"""

from .client import CacheClient
from .config.settings import ClientOptions
from .exceptions import (
    AlreadySubscribedError,
    CacheClientError,
    CacheConnectionError,
    DuplicateKeyError,
    KeyNotFoundError,
    NotInitializedError,
    ProtocolError,
    RemoteError,
)
from .protocol.commands import CacheEvent, EventNotification, EventType, Operation

__version__ = "1.0.0"

__all__ = [
    "AlreadySubscribedError",
    "CacheClient",
    "CacheClientError",
    "CacheConnectionError",
    "CacheEvent",
    "ClientOptions",
    "DuplicateKeyError",
    "EventNotification",
    "EventType",
    "KeyNotFoundError",
    "NotInitializedError",
    "Operation",
    "ProtocolError",
    "RemoteError",
]
