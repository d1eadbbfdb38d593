from typing import Optional

MISSING_TARGET_MESSAGE = "Missing ?target=ws://host:port/path"


class RelayError(Exception):
    """Base error for everything raised or reported by the relay"""

    def __init__(self, message: str, code: str = "relay_error"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class MissingTargetError(RelayError):
    """The client omitted the ?target= parameter"""
    def __init__(self, message: str = MISSING_TARGET_MESSAGE):
        super().__init__(message, code="missing_target")


class InvalidTargetError(RelayError):
    """The target is present but is not a ws:// or wss:// URL"""
    def __init__(self, target: str, reason: str = ""):
        self.target = target
        message = f"Invalid target {target!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, code="invalid_target")


class UpstreamConnectError(RelayError):
    """Dialing the upstream (directly or through the proxy) failed"""
    def __init__(self, target: str, cause: Optional[BaseException] = None):
        self.target = target
        self.cause = cause
        message = f"Could not connect to {target}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, code="upstream_connect")


class TransportError(RelayError):
    """An open socket failed while reading or writing"""
    def __init__(self, role: str, cause: Optional[BaseException] = None):
        self.role = role
        self.cause = cause
        message = f"{role} transport failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, code="transport")
