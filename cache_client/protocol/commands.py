"""
Protocol Request, Response and Event Definitions

This module defines the data structures exchanged with the cache server:
requests sent by the client, responses returned on the CRUD connection and
event notifications pushed over the notification connection.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Tuple


class Operation(Enum):
    """Enumeration of request operations understood by the server."""
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CLEAR = "CLEAR"
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"


KEYED_OPERATIONS = frozenset({
    Operation.CREATE,
    Operation.READ,
    Operation.UPDATE,
    Operation.DELETE,
})


class EventType(Enum):
    """Kinds of cache mutation reported on the notification connection."""
    ItemAdded = "ItemAdded"
    ItemUpdated = "ItemUpdated"
    ItemRemoved = "ItemRemoved"
    ItemExpired = "ItemExpired"
    ItemEvicted = "ItemEvicted"

    @classmethod
    def parse(cls, raw: Any) -> "EventType":
        """
        Resolve an event type from its wire name or ordinal.

        Raises:
            ValueError: If raw names no known event type.
        """
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, int) and not isinstance(raw, bool):
            members = list(cls)
            if 0 <= raw < len(members):
                return members[raw]
            raise ValueError(f"unknown event type ordinal: {raw}")
        if isinstance(raw, str):
            for member in cls:
                if member.value.lower() == raw.lower():
                    return member
        raise ValueError(f"unknown event type: {raw!r}")


@dataclass
class Request:
    """
    Represents a single request sent to the server.

    Attributes:
        operation: The operation to perform
        key: The key for CREATE/READ/UPDATE/DELETE (absent otherwise)
        value: Opaque JSON-serializable payload for CREATE/UPDATE
        expiration_seconds: Optional time-to-live for CREATE/UPDATE
        subscribed_event_types: Event filter for SUBSCRIBE (empty = all)
        key_pattern: Key filter for SUBSCRIBE; a trailing '*' is a prefix match
    """
    operation: Operation
    key: Optional[str] = None
    value: Any = None
    expiration_seconds: Optional[int] = None
    subscribed_event_types: Tuple[EventType, ...] = ()
    key_pattern: Optional[str] = None

    def validate(self) -> None:
        """
        Check the request is well formed for its operation.

        Raises:
            ValueError: If the key or expiration does not fit the operation.
        """
        if self.operation in KEYED_OPERATIONS:
            if not isinstance(self.key, str) or not self.key:
                raise ValueError(f"{self.operation.value} requires a non-empty key")
        elif self.key is not None:
            raise ValueError(f"{self.operation.value} does not take a key")

        if self.expiration_seconds is not None:
            if (not isinstance(self.expiration_seconds, int)
                    or isinstance(self.expiration_seconds, bool)
                    or self.expiration_seconds < 0):
                raise ValueError(
                    f"expiration_seconds must be a non-negative integer, got {self.expiration_seconds!r}"
                )

    @classmethod
    def subscribe(cls, key_pattern: Optional[str] = None, event_types=()) -> "Request":
        """Create a SUBSCRIBE request."""
        return cls(
            operation=Operation.SUBSCRIBE,
            subscribed_event_types=tuple(EventType.parse(e) for e in event_types),
            key_pattern=key_pattern,
        )

    @classmethod
    def unsubscribe(cls) -> "Request":
        """Create an UNSUBSCRIBE request."""
        return cls(operation=Operation.UNSUBSCRIBE)


@dataclass(frozen=True)
class CacheEvent:
    """
    A cache mutation reported by the server.

    Attributes:
        event_type: What happened to the key
        key: The affected key
        value: The value involved, if the server sent one
        timestamp: When the server observed the change (UTC)
        reason: Optional server-supplied explanation (e.g. eviction cause)
    """
    event_type: EventType
    key: str
    value: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None


@dataclass(frozen=True)
class EventNotification:
    """Immutable value handed to event observers."""
    event_type: EventType
    key: str
    value: Any
    timestamp: datetime
    reason: Optional[str] = None

    @classmethod
    def from_event(cls, event: CacheEvent) -> "EventNotification":
        """Create a notification carrying the fields of a received event."""
        return cls(
            event_type=event.event_type,
            key=event.key,
            value=event.value,
            timestamp=event.timestamp,
            reason=event.reason,
        )


@dataclass
class Response:
    """
    Represents a decoded server response.

    Attributes:
        success: Whether the server carried out the operation
        value: The value returned (for READ operations)
        error: Error description sent by the server, if any
        is_notification: True only for messages on the notification connection
        event: The event carried by a notification
    """
    success: bool = False
    value: Any = None
    error: Optional[str] = None
    is_notification: bool = False
    event: Optional[CacheEvent] = None

    @property
    def has_error(self) -> bool:
        """True if the server sent a non-blank error message."""
        return bool(self.error and self.error.strip())
