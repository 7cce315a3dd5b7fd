"""Exceptions raised by the daemon client."""

from __future__ import annotations


class DaemonError(Exception):
    """Base class for failures talking to the daemon."""


class NotConnectedError(DaemonError):
    def __init__(self) -> None:
        super().__init__("not connected")


class ConnectionFailedError(DaemonError):
    """The socket could not be opened or dropped mid-request."""


class RequestTimeoutError(DaemonError):
    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s")


class ServerError(DaemonError):
    """The daemon answered with success: false."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class StreamClosedError(DaemonError):
    def __init__(self, reason: str = "event stream closed") -> None:
        super().__init__(reason)
