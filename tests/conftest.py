"""
Pytest configuration

Fakes for the two things the relay talks to: ``websockets`` connections
(FakeConnection) and relay sockets (FakeSocket), plus fixtures that run real
servers on ephemeral localhost ports for the end-to-end tests.
"""

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wsrelay.bridge import create_server  # noqa: E402
from wsrelay.config import Settings  # noqa: E402
from wsrelay.sockets import SocketObserver  # noqa: E402


class FakeConnection:
    """Quacks like a websockets connection: async iteration, send, close."""

    def __init__(self, path="/", incoming=()):
        self.request = SimpleNamespace(path=path)
        self.sent = []
        self.close_calls = 0
        self.closed = False
        self._incoming = asyncio.Queue()
        for message in incoming:
            self._incoming.put_nowait(message)

    def feed(self, message):
        self._incoming.put_nowait(message)

    def peer_close(self):
        self._incoming.put_nowait(None)

    def fail(self, exc):
        self._incoming.put_nowait(exc)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, message):
        self.sent.append(message)

    async def close(self):
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(None)


class FakeSocket:
    """A relay socket whose events are driven by the test."""

    def __init__(self, role, state=State.OPEN):
        self.role = role
        self.state = state
        self.sent = []
        self.close_calls = 0
        self.observers = []

    @property
    def closed(self):
        return self.state is State.CLOSED

    def subscribe(self, observer):
        self.observers.append(observer)

    def send(self, message):
        if self.state is not State.OPEN:
            return False
        self.sent.append(message)
        return True

    def close(self):
        self.close_calls += 1
        if self.state in (State.OPEN, State.CONNECTING):
            self.emit_close()

    async def wait_closed(self):
        while not self.closed:
            await asyncio.sleep(0)

    def emit_open(self):
        self.state = State.OPEN
        for observer in self.observers:
            observer.on_open(self)

    def emit_message(self, message):
        for observer in self.observers:
            observer.on_message(self, message)

    def emit_close(self):
        self.state = State.CLOSED
        for observer in self.observers:
            observer.on_close(self)

    def emit_error(self, error):
        for observer in self.observers:
            observer.on_error(self, error)


class RecordingObserver(SocketObserver):
    def __init__(self):
        self.events = []

    def on_open(self, socket):
        self.events.append(("open",))

    def on_message(self, socket, message):
        self.events.append(("message", message))

    def on_close(self, socket):
        self.events.append(("close",))

    def on_error(self, socket, error):
        self.events.append(("error", error))

    def names(self):
        return [event[0] for event in self.events]


@pytest.fixture
def fake_connection():
    def _create(path="/", incoming=()):
        return FakeConnection(path=path, incoming=incoming)
    return _create


@pytest.fixture
def fake_socket():
    def _create(role, state=State.OPEN):
        return FakeSocket(role, state)
    return _create


@pytest.fixture
def recorder():
    return RecordingObserver()


def port_of(server):
    return server.sockets[0].getsockname()[1]


@pytest_asyncio.fixture
async def echo_server():
    """Upstream that echoes every message back.

    Yields its ``port`` and a ``connected`` event set once a relay leg reaches it.
    """
    connected = asyncio.Event()

    async def echo(connection):
        connected.set()
        try:
            async for message in connection:
                await connection.send(message)
        except ConnectionClosed:
            pass

    async with serve(echo, "127.0.0.1", 0) as server:
        yield SimpleNamespace(port=port_of(server), connected=connected)


@pytest_asyncio.fixture
async def closing_server():
    """Upstream that accepts the handshake and closes right away."""
    async def hang_up(connection):
        await connection.close()

    async with serve(hang_up, "127.0.0.1", 0) as server:
        yield port_of(server)


@pytest_asyncio.fixture
async def relay_server():
    """Relay listening on an ephemeral port. Yields its port."""
    async with create_server(Settings(HOST="127.0.0.1", PORT=0)) as server:
        yield port_of(server)
