"""Protocol definitions for mrbwrite.

Contains:
- Console command strings, banner prefix and bytecode marker
- Transport Protocol for type checking
- Timing constants for handshake and upload
- Logging configuration
"""

import logging
import os
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Payload progress logging interval in bytes (configurable via envvar, 0 disables)
LOG_PROGRESS_BYTES = int(os.environ.get("MRBWRITE_LOG_PROGRESS_BYTES", "4096"))

# Payload bytes per transport write
PAYLOAD_CHUNK_BYTES = 1024

# Line terminators
PROBE_TERMINATOR = "\n"
COMMAND_TERMINATOR = "\r\n"

# Console commands
CMD_VERSION = "version"
CMD_WRITE = "write"
CMD_EXECUTE = "execute"

# Expected console responses
BANNER_PREFIX = "+OK mruby/c"
VERSION_MARKER = "RITE0300"
ERROR_PREFIX = "-ERR"

# Magic marker at the start of every bytecode image
BYTECODE_MAGIC = b"RITE"

DEFAULT_BAUDRATE = 19200
DEFAULT_PORT = "/dev/ttyUSB0"

# Default timing constants
DEFAULT_PROBE_TIMEOUT_S = 5.0  # Board may still be booting
DEFAULT_RESPONSE_TIMEOUT_S = 1.0  # Console replies to every other command


class Transport(Protocol):
    """Protocol for the line-oriented duplex connection to the board."""

    def open(self, port: str, baudrate: int) -> None: ...
    def write_bytes(self, data: bytes, /) -> int: ...
    def read_line(self, timeout_s: float) -> bytes | None: ...
    def close(self) -> None: ...
