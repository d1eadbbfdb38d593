import asyncio
import enum
import logging

from websockets.protocol import State

from wsrelay.errors import RelayError
from wsrelay.sockets import Message, RelaySocket, SocketObserver

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    ACTIVE = "active"
    DRAINING = "draining"
    TERMINATED = "terminated"


class RelaySession(SocketObserver):
    """
    Binds one client socket to one upstream socket.

    Messages are forwarded verbatim to the opposite side while that side is
    OPEN and dropped otherwise. When either side closes, the other is closed
    too; closing is idempotent so the order in which the two sides report
    their close does not matter.
    """

    def __init__(self, client: RelaySocket, upstream: RelaySocket, target_url: str):
        self.client = client
        self.upstream = upstream
        self.target_url = target_url
        self.dropped = 0
        client.subscribe(self)
        upstream.subscribe(self)

    def __repr__(self) -> str:
        return f"<RelaySession {self.target_url} {self.state.value}>"

    @property
    def state(self) -> SessionState:
        closed = [self.client.closed, self.upstream.closed]
        if all(closed):
            return SessionState.TERMINATED
        if any(closed):
            return SessionState.DRAINING
        return SessionState.ACTIVE

    def peer_of(self, socket: RelaySocket) -> RelaySocket:
        return self.upstream if socket is self.client else self.client

    def close_both(self) -> None:
        for socket in (self.client, self.upstream):
            # CLOSING and CLOSED sockets are already on their way out.
            if socket.state in (State.OPEN, State.CONNECTING):
                socket.close()

    async def wait_closed(self) -> None:
        await asyncio.gather(self.client.wait_closed(), self.upstream.wait_closed())

    def on_open(self, socket: RelaySocket) -> None:
        if socket is self.upstream:
            logger.info("Upstream connected: %s", self.target_url)

    def on_message(self, socket: RelaySocket, message: Message) -> None:
        peer = self.peer_of(socket)
        if peer.state is State.OPEN:
            peer.send(message)
        else:
            self.dropped += 1
            logger.debug(
                "Dropped %s message for %s socket in state %s",
                socket.role, peer.role, peer.state.name,
            )

    def on_close(self, socket: RelaySocket) -> None:
        logger.info("%s disconnected", socket.role.capitalize())
        self.close_both()

    def on_error(self, socket: RelaySocket, error: RelayError) -> None:
        logger.error("%s error: %s", socket.role.capitalize(), error.message)
