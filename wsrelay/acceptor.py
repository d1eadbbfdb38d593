"""Turns an accepted client connection into a relay session."""

import json
import logging
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from websockets.exceptions import ConnectionClosed

from wsrelay.config import TransportConfig
from wsrelay.connector import connect
from wsrelay.errors import MISSING_TARGET_MESSAGE, RelayError
from wsrelay.session import RelaySession
from wsrelay.sockets import ClientSocket

logger = logging.getLogger(__name__)


def target_from_path(path: str) -> Optional[str]:
    """First ``target`` query value of the request path; empty counts as missing."""
    values = parse_qs(urlsplit(path).query).get("target")
    return values[0] if values else None


async def accept(connection, transport: TransportConfig) -> Optional[RelaySession]:
    """Pair ``connection`` with an upstream connection to its ``?target=``.

    Returns None when the request is rejected; the client connection is
    closed by then. Nothing raised by the connector escapes from here.
    """
    target = target_from_path(connection.request.path)

    if not target:
        logger.warning("Rejected client without target: %s", connection.request.path)
        try:
            await connection.send(json.dumps({"error": MISSING_TARGET_MESSAGE}))
        except ConnectionClosed:
            logger.debug("Client left before the error payload was sent")
        await connection.close()
        return None

    logger.info("Client connected → Target: %s", target)

    try:
        upstream = connect(target, transport)
    except RelayError as exc:
        logger.error("Upstream creation failed: %s", exc.message)
        await connection.close()
        return None

    client = ClientSocket(connection)
    session = RelaySession(client, upstream, target)
    client.start()
    return session
