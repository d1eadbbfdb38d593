"""
WebSocket relay: pairs each client connection with an upstream connection
to the ``?target=`` URL and forwards messages both ways, optionally through
an intercepting HTTP(S) proxy such as Burp.
"""

from wsrelay.config import Settings, TransportConfig, load_settings
from wsrelay.errors import (
    MISSING_TARGET_MESSAGE,
    InvalidTargetError,
    MissingTargetError,
    RelayError,
    TransportError,
    UpstreamConnectError,
)

__version__ = "0.2.0"

__all__ = [
    "MISSING_TARGET_MESSAGE",
    "InvalidTargetError",
    "MissingTargetError",
    "RelayError",
    "Settings",
    "TransportConfig",
    "TransportError",
    "UpstreamConnectError",
    "load_settings",
]
