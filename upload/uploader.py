"""Bytecode upload for mrbwrite.

Transfers an image to a board that completed the handshake:
  1. Send `write <N>` and read the acknowledgement
  2. Stream the N raw image bytes (no terminator)
  3. Read the post-transfer acknowledgement
  4. Send `execute` to run the image

In strict mode a missing or negative acknowledgement to `write` aborts before
any payload byte is sent: a board that did not enter write mode would read
the payload as console input. strict=False keeps the lenient behavior of
warning and streaming anyway.
"""

import logging
from dataclasses import dataclass, field

from common.channel import CommandChannel
from common.connection import ProtocolError
from common.encoding import Response, encode_write_command
from common.image import BytecodeImage
from common.protocol import (
    CMD_EXECUTE,
    DEFAULT_RESPONSE_TIMEOUT_S,
    ERROR_PREFIX,
    LOG_PROGRESS_BYTES,
    PAYLOAD_CHUNK_BYTES,
    TRACE,
)

logger = logging.getLogger(__name__)


class UploadError(ProtocolError):
    """Raised when the board did not accept the upload."""

    pass


@dataclass
class UploadResult:
    """Outcome of an image transfer."""

    size: int
    bytes_sent: int = 0
    write_ack: str | None = None
    transfer_ack: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.bytes_sent == self.size


class BytecodeUploader:
    """Sends a validated image to a ready board and triggers execution.

    Args:
        channel: Channel to the board.
        response_timeout_s: Wait for each acknowledgement.
        strict: Abort if `write` is not acknowledged.
        chunk_size: Payload bytes per transport write.
    """

    def __init__(
        self,
        channel: CommandChannel,
        response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S,
        strict: bool = True,
        chunk_size: int = PAYLOAD_CHUNK_BYTES,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._channel = channel
        self._response_timeout_s = response_timeout_s
        self._strict = strict
        self._chunk_size = chunk_size

    def _warn(self, result: UploadResult, msg: str) -> None:
        logger.warning(msg)
        result.warnings.append(msg)

    def _check_write_ack(self, result: UploadResult, ack: Response) -> None:
        if ack.timed_out:
            problem = "no acknowledgement to write command"
        elif ack.startswith(ERROR_PREFIX):
            problem = f"write command rejected: {ack.line}"
        else:
            result.write_ack = ack.line
            logger.debug(f"Write acknowledged: {ack.line}")
            return

        if self._strict:
            raise UploadError(f"Upload: {problem}")
        self._warn(result, f"{problem}, sending payload anyway")

    def _stream(self, result: UploadResult, data: bytes) -> None:
        for offset in range(0, len(data), self._chunk_size):
            chunk = data[offset : offset + self._chunk_size]
            before = result.bytes_sent
            result.bytes_sent += self._channel.write_payload(chunk)
            logger.log(TRACE, f"Upload: {result.bytes_sent}/{result.size} bytes")
            if LOG_PROGRESS_BYTES > 0 and (
                result.bytes_sent // LOG_PROGRESS_BYTES > before // LOG_PROGRESS_BYTES
            ):
                logger.debug(f"Upload progress: {result.bytes_sent}/{result.size} bytes")

    def upload(self, image: BytecodeImage) -> UploadResult:
        """Announce and transfer image. Does not execute it.

        Raises:
            UploadError: In strict mode, if `write` is not acknowledged.
            WriteError: If the transport write fails.
        """
        result = UploadResult(size=len(image))
        command = encode_write_command(len(image))
        logger.info(f"Uploading {len(image)} bytes")

        ack = self._channel.send_and_receive(command, self._response_timeout_s)
        self._check_write_ack(result, ack)

        self._stream(result, image.data)

        # A missing transfer acknowledgement is not fatal
        transfer_ack = self._channel.receive_line(self._response_timeout_s)
        if transfer_ack.timed_out:
            self._warn(result, "no acknowledgement after payload")
        else:
            result.transfer_ack = transfer_ack.line
            if transfer_ack.startswith(ERROR_PREFIX):
                self._warn(result, f"board reported error after payload: {transfer_ack.line}")
            else:
                logger.debug(f"Transfer acknowledged: {transfer_ack.line}")

        logger.info(f"Upload complete ({result.bytes_sent} bytes)")
        return result

    def execute(self) -> Response:
        """Send `execute` and return the board's reply or the timeout marker."""
        logger.info("Executing uploaded bytecode")
        response = self._channel.send_and_receive(CMD_EXECUTE, self._response_timeout_s)
        if response.timed_out:
            logger.warning("No reply to execute command")
        else:
            logger.info(f"Execute: {response.line}")
        return response
