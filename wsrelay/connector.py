"""
Upstream connector

Validates the requested target and dials it, either directly or through the
configured forward proxy. The way a target is dialed is a ``Tunnel``:

  DirectDialer       straight to the target, proxy environment variables ignored
  PlainProxyTunnel   HTTP CONNECT through the proxy, plain ws:// inside
  SecureProxyTunnel  HTTP CONNECT through the proxy, TLS to the wss:// target

``select_tunnel`` picks one per request from the target's scheme, and
``connect`` returns an ``UpstreamSocket`` that is still CONNECTING so callers
can subscribe before anything happens on the wire.
"""

import logging
import ssl
from dataclasses import dataclass
from typing import Optional

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import InvalidURI
from websockets.uri import parse_uri

from wsrelay.config import TransportConfig
from wsrelay.errors import InvalidTargetError, MissingTargetError, RelayError, UpstreamConnectError
from wsrelay.sockets import RelaySocket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayRequest:
    target_url: str
    secure: bool


def parse_target(target: Optional[str]) -> RelayRequest:
    """Validate ``target`` and derive the secure flag from its scheme.

    Raises ``MissingTargetError`` for a missing or empty target and
    ``InvalidTargetError`` when it is not a ws:// or wss:// URL.
    """
    if not target:
        raise MissingTargetError()
    try:
        uri = parse_uri(target)
    except (InvalidURI, ValueError) as exc:
        # urllib raises ValueError for malformed ports and brackets.
        raise InvalidTargetError(target, str(exc)) from exc
    return RelayRequest(target_url=target, secure=uri.secure)


class Tunnel:
    """Dials a target. Subclasses only decide which ``connect`` options apply."""

    name = "direct"

    def __init__(self, transport: TransportConfig):
        self.transport = transport

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"

    def options(self, request: RelayRequest) -> dict:
        return {
            "open_timeout": self.transport.open_timeout,
            "max_size": self.transport.max_size,
        }

    async def dial(self, request: RelayRequest) -> ClientConnection:
        return await ws_connect(request.target_url, **self.options(request))


class DirectDialer(Tunnel):
    def options(self, request: RelayRequest) -> dict:
        options = super().options(request)
        options["proxy"] = None
        return options


class PlainProxyTunnel(Tunnel):
    name = "http-proxy"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.transport.proxy_address}>"

    def options(self, request: RelayRequest) -> dict:
        options = super().options(request)
        options["proxy"] = self.transport.proxy_address
        return options


class SecureProxyTunnel(PlainProxyTunnel):
    name = "https-proxy"

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        # An intercepting proxy re-signs the target's certificate with its own CA.
        if not self.transport.proxy_ca_file:
            return None
        return ssl.create_default_context(cafile=self.transport.proxy_ca_file)

    def options(self, request: RelayRequest) -> dict:
        options = super().options(request)
        context = self.ssl_context()
        if context is not None:
            options["ssl"] = context
        return options


def select_tunnel(request: RelayRequest, transport: TransportConfig) -> Tunnel:
    if not transport.use_proxy_tunnel:
        return DirectDialer(transport)
    if request.secure:
        return SecureProxyTunnel(transport)
    return PlainProxyTunnel(transport)


class UpstreamSocket(RelaySocket):
    """The connection to the target. CONNECTING until the tunnel's dial succeeds."""

    def __init__(self, request: RelayRequest, tunnel: Tunnel):
        super().__init__("upstream")
        self.request = request
        self.tunnel = tunnel

    async def _open(self) -> ClientConnection:
        logger.debug("Dialing %s via %s", self.request.target_url, self.tunnel.name)
        return await self.tunnel.dial(self.request)

    def _open_error(self, exc: Exception) -> RelayError:
        return UpstreamConnectError(self.request.target_url, exc)


def connect(target_url: Optional[str], transport: TransportConfig) -> UpstreamSocket:
    """Start connecting to ``target_url`` and return the CONNECTING socket.

    Validation errors are raised here, before any network activity. Network,
    proxy and handshake failures arrive later as an ``on_error`` notification
    followed by ``on_close``.
    """
    request = parse_target(target_url)
    upstream = UpstreamSocket(request, select_tunnel(request, transport))
    upstream.start()
    return upstream
