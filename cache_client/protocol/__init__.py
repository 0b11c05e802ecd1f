"""Protocol module for the cache client."""

from .commands import (
    CacheEvent,
    EventNotification,
    EventType,
    Operation,
    Request,
    Response,
)
from .framing import FrameReader
from .parser import ProtocolCodec

__all__ = [
    "CacheEvent",
    "EventNotification",
    "EventType",
    "FrameReader",
    "Operation",
    "ProtocolCodec",
    "Request",
    "Response",
]
