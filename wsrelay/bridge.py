"""
Protocol upgrade bridge

Glue between the ``websockets`` server and the relay. Upgrade requests go
through the WebSocket handshake and on to the acceptor; plain HTTP requests
get the landing page at ``/`` and 404 everywhere else.
"""

import logging
from http import HTTPStatus
from pathlib import Path

from websockets.asyncio.server import ServerConnection, serve
from websockets.http11 import Request, Response

from wsrelay.acceptor import accept
from wsrelay.config import Settings, TransportConfig

logger = logging.getLogger(__name__)

INDEX_FILE = Path(__file__).resolve().parent / "static" / "index.html"


def is_upgrade(request: Request) -> bool:
    return any("websocket" in value.lower() for value in request.headers.get_all("Upgrade"))


def landing_page(connection: ServerConnection, request: Request):
    """``process_request`` hook: answer plain HTTP, let upgrades through."""
    if is_upgrade(request):
        return None

    if request.path != "/":
        return connection.respond(HTTPStatus.NOT_FOUND, "Not Found")

    try:
        content = INDEX_FILE.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Landing page unavailable: %s", exc)
        return connection.respond(HTTPStatus.INTERNAL_SERVER_ERROR, "Server Error")

    response: Response = connection.respond(HTTPStatus.OK, content)
    del response.headers["Content-Type"]
    response.headers["Content-Type"] = "text/html; charset=utf-8"
    return response


class RelayHandler:
    """Connection handler: holds the client connection until its session ends."""

    def __init__(self, transport: TransportConfig):
        self.transport = transport

    async def __call__(self, connection: ServerConnection) -> None:
        session = await accept(connection, self.transport)
        if session is None:
            return
        await session.wait_closed()
        logger.debug("Session finished: %s", session.target_url)


def create_server(settings: Settings) -> serve:
    transport = settings.transport()
    return serve(
        RelayHandler(transport),
        settings.HOST,
        settings.PORT,
        process_request=landing_page,
        max_size=transport.max_size,
    )
