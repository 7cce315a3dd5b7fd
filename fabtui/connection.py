"""Event stream connection state with bounded exponential backoff."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fabtui.enums import ConnectionState

log = logging.getLogger(__name__)

INITIAL_DELAY = 0.5  # seconds
MAX_DELAY = 8.0
MAX_RECONNECTS = 10


@dataclass
class ConnectionSupervisor:
    """Tracks the stream's lifecycle; the dispatch loop schedules the actual I/O.

    Starts Connected optimistically. A stream failure moves to Disconnected and,
    while attempts remain, straight on to Reconnecting. Each failed attempt
    doubles the delay (capped at MAX_DELAY). Running out of attempts leaves the
    supervisor Disconnected until a manual reconnect.
    """

    max_reconnects: int = MAX_RECONNECTS
    state: ConnectionState = ConnectionState.CONNECTED
    attempts: int = 0
    delay: float = INITIAL_DELAY
    attached: bool = False

    def _set(self, state: ConnectionState) -> None:
        if state != self.state:
            log.debug(f"Connection {self.state} -> {state} (attempt {self.attempts})")
        self.state = state

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def connected(self) -> None:
        """A (re)attach succeeded."""
        self._set(ConnectionState.CONNECTED)
        self.attempts = 0
        self.delay = INITIAL_DELAY
        self.attached = True

    def stream_failed(self) -> bool:
        """The stream read failed. Returns True if a reconnect should be scheduled."""
        self.attached = False
        self._set(ConnectionState.DISCONNECTED)
        if self.attempts < self.max_reconnects:
            self._set(ConnectionState.RECONNECTING)
            return True
        return False

    def reconnect_failed(self) -> bool:
        """A reconnect attempt failed. Returns True if another should be scheduled."""
        self.attempts += 1
        self.delay = min(self.delay * 2, MAX_DELAY)
        if self.attempts < self.max_reconnects:
            return True
        self._set(ConnectionState.DISCONNECTED)
        return False

    def request_manual_reconnect(self) -> bool:
        """Operator asked to reconnect. Only honored while Disconnected."""
        if self.state != ConnectionState.DISCONNECTED:
            return False
        self.attempts = 0
        self.delay = INITIAL_DELAY
        self._set(ConnectionState.RECONNECTING)
        return True

    def request_reconnect(self) -> bool:
        """A request found the client disconnected. Starts reconnecting unless already doing so."""
        if self.state == ConnectionState.RECONNECTING:
            return False
        self.attached = False
        self._set(ConnectionState.RECONNECTING)
        return True
