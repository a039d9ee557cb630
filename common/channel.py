"""Command/response channel for mrbwrite.

Contains:
- CommandChannel: Sends one console command and waits for one line reply

The console handles a single outstanding request, so replies are matched to
commands by arrival order only.
"""

import logging

from common.connection import MrbwriteError, ReadError, WriteError
from common.encoding import Response, decode_line, encode_command
from common.protocol import COMMAND_TERMINATOR, TRACE, Transport

logger = logging.getLogger(__name__)


class CommandChannel:
    """Correlates one outbound command with the next inbound line."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self.bytes_written = 0

    def _write(self, data: bytes, what: str) -> int:
        try:
            written = self._transport.write_bytes(data)
        except WriteError:
            raise
        except Exception as e:
            raise WriteError(f"Failed to send {what}: {e}") from e
        written = len(data) if written is None else written
        if written != len(data):
            raise WriteError(f"Short write sending {what}: {written}/{len(data)} bytes")
        self.bytes_written += written
        return written

    def send(self, command: str, terminator: str = COMMAND_TERMINATOR) -> int:
        """Write command + terminator. Returns bytes written.

        Raises:
            WriteError: If the transport write fails.
        """
        logger.log(TRACE, f"> {command!r}")
        return self._write(encode_command(command, terminator), f"command {command!r}")

    def write_payload(self, data: bytes) -> int:
        """Write raw bytes with no terminator. Returns bytes written."""
        logger.log(TRACE, f"> <{len(data)} raw bytes>")
        return self._write(data, f"{len(data)}-byte payload")

    def receive_line(self, timeout_s: float) -> Response:
        """Wait up to timeout_s for the next line.

        Returns the trimmed line, or Response.timeout() if none arrived.

        Raises:
            ReadError: If the transport read fails.
        """
        try:
            raw = self._transport.read_line(timeout_s)
        except MrbwriteError:
            raise
        except Exception as e:
            raise ReadError(f"Failed to read reply: {e}") from e
        if raw is None:
            logger.log(TRACE, f"< timeout ({timeout_s}s)")
            return Response.timeout()
        line = decode_line(raw)
        logger.log(TRACE, f"< {line!r}")
        return Response(line=line)

    def send_and_receive(
        self,
        command: str,
        timeout_s: float,
        terminator: str = COMMAND_TERMINATOR,
    ) -> Response:
        """Send a command and return the next line or the timeout marker.

        Raises:
            WriteError: If the command could not be sent.
            ReadError: If the reply could not be read.
        """
        self.send(command, terminator)
        return self.receive_line(timeout_s)
