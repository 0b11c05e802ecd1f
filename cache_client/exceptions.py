"""
Cache Client Exceptions

Every failure raised by the client derives from CacheClientError, so callers
can catch the whole family at once or a single refinement.
"""


class CacheClientError(Exception):
    """Base exception for cache client operations."""


class NotInitializedError(CacheClientError):
    """Raised when an operation is attempted before initialize() or after close()."""


class CacheConnectionError(CacheClientError):
    """Raised when connecting to, writing to or reading from the server fails or times out."""


class ProtocolError(CacheClientError):
    """Raised when the server sends a payload that cannot be decoded."""


class RemoteError(CacheClientError):
    """
    Raised when the server reports a failure.

    Attributes:
        message: The error text sent by the server
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateKeyError(RemoteError):
    """Raised when CREATE targets a key that already exists."""

    def __init__(self, key: str, message: str = "Duplicate key."):
        super().__init__(message)
        self.key = key


class KeyNotFoundError(RemoteError):
    """Raised when UPDATE targets a key that does not exist."""

    def __init__(self, key: str, message: str = "Key does not exist."):
        super().__init__(message)
        self.key = key


class AlreadySubscribedError(CacheClientError):
    """Raised by subscribe() while a notification subscription is active."""
