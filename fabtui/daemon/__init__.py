"""Client side of the fab daemon protocol."""

from fabtui.daemon.client import DaemonClient, EventStream
from fabtui.daemon.errors import (
    ConnectionFailedError,
    DaemonError,
    NotConnectedError,
    RequestTimeoutError,
    ServerError,
    StreamClosedError,
)

__all__ = [
    "ConnectionFailedError",
    "DaemonClient",
    "DaemonError",
    "EventStream",
    "NotConnectedError",
    "RequestTimeoutError",
    "ServerError",
    "StreamClosedError",
]
