"""Connection state and errors for mrbwrite.

Contains:
- SessionState: Enum for the controller's view of the board session
- MrbwriteError and subclasses: Exceptions raised by the protocol core
- ConnectionConfig: Immutable parameters for one session
"""

from dataclasses import dataclass
from enum import Enum

from common.protocol import (
    DEFAULT_BAUDRATE,
    DEFAULT_PROBE_TIMEOUT_S,
    DEFAULT_RESPONSE_TIMEOUT_S,
)


class SessionState(Enum):
    """State of a session, owned by SessionController."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    HANDSHAKE_IN_PROGRESS = "handshake_in_progress"
    READY = "ready"
    UPLOADING = "uploading"
    EXECUTING = "executing"
    CLOSED = "closed"


class MrbwriteError(Exception):
    """Base class for all mrbwrite errors."""

    pass


class PortConnectionError(MrbwriteError):
    """Raised when the serial port cannot be opened."""

    pass


class WriteError(MrbwriteError):
    """Raised when writing to the transport fails."""

    pass


class ReadError(MrbwriteError):
    """Raised when reading from the transport fails."""

    pass


class ProtocolError(MrbwriteError):
    """Raised when the console replies with unexpected content."""

    pass


class InvalidImageError(MrbwriteError):
    """Raised when a byte sequence is not a bytecode image."""

    pass


@dataclass(frozen=True)
class ConnectionConfig:
    """Parameters for one session, immutable for its lifetime.

    max_probe_attempts and probe_deadline_s bound the banner probe;
    None means no bound.
    """

    port: str
    baudrate: int = DEFAULT_BAUDRATE
    response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S
    probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S
    max_probe_attempts: int | None = None
    probe_deadline_s: float | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.port:
            raise ValueError("port is required")
        if self.baudrate <= 0:
            raise ValueError(f"baudrate must be positive, got {self.baudrate}")
        if self.response_timeout_s <= 0 or self.probe_timeout_s <= 0:
            raise ValueError("timeouts must be positive")
        if self.max_probe_attempts is not None and self.max_probe_attempts < 1:
            raise ValueError(
                f"max_probe_attempts must be at least 1, got {self.max_probe_attempts}"
            )
        if self.probe_deadline_s is not None and self.probe_deadline_s <= 0:
            raise ValueError(f"probe_deadline_s must be positive, got {self.probe_deadline_s}")
