"""
Relay sockets

A ``RelaySocket`` is one side of a relay pair. It wraps a ``websockets``
connection, tracks its state with ``websockets.protocol.State`` and turns the
connection's life into observer notifications:

  on_open     the socket finished connecting (upstream only)
  on_message  a message arrived, delivered verbatim
  on_error    the transport failed; always followed by on_close
  on_close    the socket reached CLOSED; emitted exactly once

Sending never blocks the caller: ``send`` queues the message on an ordered
outbox drained by a writer task, and ``close`` queues the closing handshake
behind whatever is already in the outbox.
"""

import asyncio
import logging
from typing import List, Optional, Union

from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from wsrelay.errors import RelayError, TransportError

logger = logging.getLogger(__name__)

Message = Union[str, bytes]

_CLOSE = object()


class SocketObserver:
    """Receives notifications from a RelaySocket. Override what you need."""

    def on_open(self, socket: "RelaySocket") -> None:
        pass

    def on_message(self, socket: "RelaySocket", message: Message) -> None:
        pass

    def on_close(self, socket: "RelaySocket") -> None:
        pass

    def on_error(self, socket: "RelaySocket", error: RelayError) -> None:
        pass


class RelaySocket:
    def __init__(self, role: str, state: State = State.CONNECTING):
        self.role = role
        self.state = state
        self.connection = None
        self._observers: List[SocketObserver] = []
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._dialing: Optional[asyncio.Task] = None
        self._aborted = False
        self._closed = asyncio.Event()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.role} {self.state.name}>"

    @property
    def closed(self) -> bool:
        return self.state is State.CLOSED

    def subscribe(self, observer: SocketObserver) -> None:
        self._observers.append(observer)

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._finished)

    def send(self, message: Message) -> bool:
        """Queue ``message`` if the socket is OPEN. Returns False when it was dropped."""
        if self.state is not State.OPEN:
            return False
        self._outbox.put_nowait(message)
        return True

    def close(self) -> None:
        """Start closing. Calling it again, or on a closed socket, does nothing."""
        if self.state is State.OPEN:
            self.state = State.CLOSING
            self._outbox.put_nowait(_CLOSE)
        elif self.state is State.CONNECTING:
            self.state = State.CLOSING
            self._aborted = True
            if self._task is None:
                self._finished()
            elif self._dialing is None:
                self._task.cancel()
            else:
                self._dialing.cancel()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _open(self):
        return self.connection

    def _open_error(self, exc: Exception) -> RelayError:
        return TransportError(self.role, exc)

    async def _dial(self):
        # Kept on self so a dial finishing as it is cancelled still gets closed.
        self.connection = await self._open()
        return self.connection

    async def _run(self) -> None:
        self._dialing = asyncio.ensure_future(self._dial())
        try:
            connection = await self._dialing
        except asyncio.CancelledError:
            if self.connection is not None:
                await self.connection.close()
            if not self._aborted:
                raise
            return
        except Exception as exc:
            self._emit("on_error", self._open_error(exc))
            return

        try:
            if self._aborted:
                return
            if self.state is State.CONNECTING:
                self.state = State.OPEN
                self._emit("on_open")
            await self._pump(connection)
        finally:
            await connection.close()

    async def _pump(self, connection) -> None:
        reader = asyncio.ensure_future(self._read(connection))
        writer = asyncio.ensure_future(self._write(connection))
        try:
            done, _ = await asyncio.wait(
                [reader, writer], return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (reader, writer):
                task.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)

        for task in done:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None and not isinstance(exc, ConnectionClosedOK):
                self._emit("on_error", TransportError(self.role, exc))
                break

    async def _read(self, connection) -> None:
        async for message in connection:
            self._emit("on_message", message)

    async def _write(self, connection) -> None:
        while True:
            message = await self._outbox.get()
            if message is _CLOSE:
                await connection.close()
                return
            await connection.send(message)

    def _finished(self, task: Optional[asyncio.Task] = None) -> None:
        if task is not None and not task.cancelled() and task.exception() is not None:
            logger.error("%s socket stopped unexpectedly: %s", self.role, task.exception())
        if self.state is State.CLOSED:
            return
        self.state = State.CLOSED
        self._closed.set()
        self._emit("on_close")

    def _emit(self, event: str, *args) -> None:
        for observer in list(self._observers):
            try:
                getattr(observer, event)(self, *args)
            except Exception:
                logger.exception("%s observer failed in %s", self.role, event)


class ClientSocket(RelaySocket):
    """The accepted client connection. It is OPEN from the start."""

    def __init__(self, connection):
        super().__init__("client", State.OPEN)
        self.connection = connection
