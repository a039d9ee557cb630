"""Common modules for mrbwrite.

This package contains code shared by the handshake, upload and session layers:
- protocol: Console commands, timing constants, Transport Protocol
- connection: ConnectionConfig, SessionState, exceptions
- encoding: Console line encoding/decoding, Response
- channel: CommandChannel
- device: Serial port enumeration and SerialTransport
- image: BytecodeImage loading and concatenation
- compiler: mrbc wrapper
- report: Reporting abstractions
"""

from common.channel import CommandChannel
from common.connection import (
    ConnectionConfig,
    InvalidImageError,
    MrbwriteError,
    PortConnectionError,
    ProtocolError,
    ReadError,
    SessionState,
    WriteError,
)
from common.encoding import Response
from common.image import BytecodeImage
from common.protocol import (
    BANNER_PREFIX,
    BYTECODE_MAGIC,
    DEFAULT_BAUDRATE,
    DEFAULT_PROBE_TIMEOUT_S,
    DEFAULT_RESPONSE_TIMEOUT_S,
    Transport,
)

__all__ = [
    # Protocol
    "BANNER_PREFIX",
    "BYTECODE_MAGIC",
    "DEFAULT_BAUDRATE",
    "DEFAULT_PROBE_TIMEOUT_S",
    "DEFAULT_RESPONSE_TIMEOUT_S",
    "Transport",
    # Connection
    "ConnectionConfig",
    "SessionState",
    "CommandChannel",
    "Response",
    "BytecodeImage",
    # Exceptions
    "InvalidImageError",
    "MrbwriteError",
    "PortConnectionError",
    "ProtocolError",
    "ReadError",
    "WriteError",
]
