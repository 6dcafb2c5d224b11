"""Pytest configuration and shared fixtures for cctrack tests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import Awaitable, Callable

import pytest
import pytest_asyncio
from hypothesis import HealthCheck, settings

from cctrack.core.content import BlobFormat, Hash, HashAndFormat, PeerId
from cctrack.tracker.client import TRACKER_ALPN
from cctrack.transport.endpoint import AddressBook, Connection, Endpoint

RequestHandler = Callable[[bytes], Awaitable[bytes]]

# Autouse fixtures isolate config and cwd, nothing per example depends on them
settings.register_profile("cctrack", suppress_health_check=[HealthCheck.function_scoped_fixture])
settings.load_profile("cctrack")


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("asyncio", "marks tests as async (deselect with '-m \"not asyncio\"')"),
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("core", "marks tests as content model tests"),
        ("protocols", "marks tests as protocol tests"),
        ("tracker", "marks tests as tracker tests"),
        ("network", "marks tests as transport tests"),
        ("cli", "marks tests as CLI tests"),
        ("config", "marks tests as configuration tests"),
        ("property", "marks tests as property-based tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path):
    """Keep tests away from real config files and CCTRACK_* variables."""
    for name in list(os.environ):
        if name.startswith("CCTRACK_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


def make_hash(seed: int) -> Hash:
    return Hash(bytes([seed % 256]) * 32)


def make_peer(seed: int) -> PeerId:
    return PeerId(bytes([(seed * 7 + 1) % 256]) * 32)


@pytest.fixture
def content_a() -> HashAndFormat:
    return HashAndFormat(make_hash(0xDE), BlobFormat.RAW)


@pytest.fixture
def tracker_id() -> PeerId:
    return make_peer(100)


@pytest.fixture
def client_id() -> PeerId:
    return make_peer(200)


class FakeTracker:
    """A tracker answering every request with ``handler(request_bytes)``.

    Records the raw requests it received.
    """

    def __init__(self, node_id: PeerId, handler: RequestHandler, alpn: bytes = TRACKER_ALPN):
        self.node_id = node_id
        self.handler = handler
        self.alpn = alpn
        self.requests: list[bytes] = []
        self.connections = 0
        self.server: asyncio.Server | None = None
        self.address: tuple[str, int] | None = None

    async def _serve(self, connection: Connection) -> None:
        self.connections += 1
        send, recv = await connection.accept_bi()
        request = await recv.read_to_end(16 * 1024)
        self.requests.append(request)
        await send.write_all(await self.handler(request))
        await send.finish()

    async def start(self) -> None:
        endpoint = Endpoint(self.node_id, read_timeout=5.0)
        self.server = await endpoint.listen("127.0.0.1", 0, self.alpn, self._serve)
        self.address = self.server.sockets[0].getsockname()[:2]

    async def stop(self) -> None:
        if self.server is not None:
            self.server.close()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.server.wait_closed(), timeout=5.0)


@pytest_asyncio.fixture
async def start_tracker(tracker_id):
    """Factory starting fake trackers on loopback, stopped after the test."""
    trackers: list[FakeTracker] = []

    async def _start(handler: RequestHandler, alpn: bytes = TRACKER_ALPN, node_id: PeerId | None = None) -> FakeTracker:
        tracker = FakeTracker(node_id or tracker_id, handler, alpn)
        await tracker.start()
        trackers.append(tracker)
        return tracker

    yield _start

    for tracker in trackers:
        await tracker.stop()


def client_endpoint(client_id: PeerId, tracker: FakeTracker, dialed: PeerId | None = None, **kwargs) -> Endpoint:
    """Endpoint that knows the fake tracker's address."""
    book = AddressBook({dialed or tracker.node_id: [tracker.address]})
    return Endpoint(client_id, book, **kwargs)


@pytest.fixture
def endpoint_for(client_id):
    """Factory for client endpoints that know a fake tracker's address."""

    def _make(tracker: FakeTracker, dialed: PeerId | None = None, **kwargs) -> Endpoint:
        return client_endpoint(client_id, tracker, dialed, **kwargs)

    return _make
