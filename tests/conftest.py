"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import socket
import threading
import time
from contextlib import closing
from typing import Generator, List, Optional

import pytest

from cache_client.client import CacheClient
from cache_client.config.settings import ClientOptions
from cache_client.events.dispatcher import EventDispatcher
from cache_client.protocol.commands import EventNotification
from cache_client.protocol.framing import FrameReader
from cache_client.protocol.parser import ProtocolCodec
from tests.fake_server import FakeCacheServer


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def codec() -> ProtocolCodec:
    """Create a ProtocolCodec instance."""
    return ProtocolCodec()


@pytest.fixture
def frame_reader() -> FrameReader:
    """Create a fresh FrameReader."""
    return FrameReader()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    """Create an EventDispatcher with no observers."""
    return EventDispatcher()


# ============================================================================
# Event Collection
# ============================================================================

class EventCollector:
    """
    Thread-safe observer that records notifications.

    Observers run on the listener thread, so tests wait on the collector
    instead of sleeping.

    Usage:
        collector = EventCollector()
        client.on_cache_event(collector)
        ...
        assert collector.wait_for(2)
    """

    def __init__(self):
        self.events: List[EventNotification] = []
        self._condition = threading.Condition()

    def __call__(self, notification: EventNotification) -> None:
        with self._condition:
            self.events.append(notification)
            self._condition.notify_all()

    def wait_for(self, count: int, timeout: float = 2.0) -> bool:
        """Wait until at least count events arrived."""
        with self._condition:
            return self._condition.wait_for(lambda: len(self.events) >= count, timeout)

    @property
    def keys(self) -> List[str]:
        with self._condition:
            return [event.key for event in self.events]


@pytest.fixture
def collector() -> EventCollector:
    return EventCollector()


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def cache_server() -> Generator[FakeCacheServer, None, None]:
    """
    Start a fake cache server on free ports for the duration of a test.

    The server runs on its own event loop in a background thread.
    """
    server = FakeCacheServer().start_in_thread()
    yield server
    server.stop_in_thread()


@pytest.fixture
def small_cache_server() -> Generator[FakeCacheServer, None, None]:
    """A fake cache server that holds at most 3 keys."""
    server = FakeCacheServer(max_size=3).start_in_thread()
    yield server
    server.stop_in_thread()


@pytest.fixture
def options(cache_server: FakeCacheServer) -> ClientOptions:
    """Client options pointing at the fake cache server."""
    return ClientOptions(
        host=cache_server.host,
        port=cache_server.port,
        notification_port=cache_server.notification_port,
        timeout_milliseconds=2000,
    )


@pytest.fixture
def client(options: ClientOptions) -> Generator[CacheClient, None, None]:
    """An initialized client connected to the fake cache server."""
    cache = CacheClient(options)
    cache.initialize()
    yield cache
    cache.close()


# ============================================================================
# Scripted Raw Server
# ============================================================================

class ScriptedServer:
    """
    Minimal TCP server that answers each connection with scripted chunks.

    Useful for low-level protocol testing: responses split across reads,
    garbage payloads, servers that never answer.

    Usage:
        with ScriptedServer([b'{"Success": ', b'true}']) as server:
            ...connect to server.port...
    """

    def __init__(self, chunks: List[bytes], delay: float = 0.0, close: bool = True):
        self.chunks = chunks
        self.delay = delay
        self.close_after = close
        self.received: List[bytes] = []
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(('127.0.0.1', 0))
        self._listener.listen(8)
        self.port = self._listener.getsockname()[1]
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._connections: List[socket.socket] = []

    def _serve(self) -> None:
        self._listener.settimeout(0.1)
        while not self._stop.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            self._connections.append(conn)
            try:
                conn.settimeout(1.0)
                try:
                    self.received.append(conn.recv(65536))
                except socket.timeout:
                    pass
                for chunk in self.chunks:
                    if self.delay:
                        time.sleep(self.delay)
                    conn.sendall(chunk)
                if self.close_after:
                    conn.close()
            except OSError:
                conn.close()

    def __enter__(self) -> "ScriptedServer":
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop.set()
        self._thread.join(2)
        self._listener.close()
        for conn in self._connections:
            conn.close()


@pytest.fixture
def scripted_server():
    """
    Factory fixture for ScriptedServer.

    Usage:
        def test_something(scripted_server):
            with scripted_server([b'...']) as server:
                ...
    """
    return ScriptedServer


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# Configure asyncio mode for pytest-asyncio
pytest_plugins = ['pytest_asyncio']
