"""Serial device setup for mrbwrite.

Contains:
- PortInfo: A serial port found by enumeration
- list_ports: Enumerate serial ports
- log_device_info: Log information about a serial device
- SerialTransport: Transport implementation over pyserial
"""

import logging
import os
import time
from dataclasses import dataclass

import serial
import serial.tools.list_ports

from common.connection import PortConnectionError, ReadError, WriteError

logger = logging.getLogger(__name__)

# Poll interval for pyserial reads; bounds how late a deadline is noticed
READ_POLL_S = 0.05
WRITE_TIMEOUT_S = 5.0

# Maximum buffered bytes without a newline before the buffer is discarded
MAX_LINE_LENGTH = 4096


@dataclass
class PortInfo:
    """A serial port found by enumeration."""

    path: str
    description: str


def list_ports() -> list[PortInfo]:
    """Return available serial ports sorted by path."""
    ports = [
        PortInfo(path=p.device, description=p.description or "n/a")
        for p in serial.tools.list_ports.comports()
    ]
    return sorted(ports, key=lambda p: p.path)


def log_device_info(device: str) -> None:
    """Log information about a serial device."""
    if "://" in device:
        logger.info(f"Device: {device} (url)")
        return

    real_path = os.path.realpath(device)
    if real_path.startswith("/dev/pts/"):
        logger.info(f"Device: {device} -> {real_path} (pty)")
        return

    ports = [p for p in serial.tools.list_ports.comports() if p.device == device]
    if len(ports) == 0:
        logger.info(f"Device: {device} (not in port list)")
        return

    info = ports[0]
    logger.info(f"Device: {info.device}")
    logger.info(f"Description: {info.description}")
    if info.vid is not None:
        logger.info(f"VID:PID: {info.vid:04x}:{info.pid:04x}")
    if info.manufacturer:
        logger.info(f"Manufacturer: {info.manufacturer}")


class SerialTransport:
    """Line-oriented transport over a pyserial port.

    Bytes received after a newline stay buffered for the next read_line(),
    so a timed-out wait never consumes part of a later reply.
    """

    def __init__(self) -> None:
        self._serial: serial.Serial | None = None
        self._rx = bytearray()

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self, port: str, baudrate: int) -> None:
        """Open port at baudrate (8N1, no flow control).

        port may also be a pyserial URL such as loop://.

        Raises:
            PortConnectionError: If the port cannot be opened.
        """
        try:
            log_device_info(port)
            self._serial = serial.serial_for_url(
                port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                timeout=READ_POLL_S,
                write_timeout=WRITE_TIMEOUT_S,
            )
            self._serial.reset_input_buffer()
        except (serial.SerialException, ValueError, OSError) as e:
            self.close()
            raise PortConnectionError(f"Failed to open {port}: {e}") from e
        self._rx.clear()
        logger.debug(f"Serial port: baudrate={self._serial.baudrate}")

    def write_bytes(self, data: bytes, /) -> int:
        """Write data and wait until it has left the output buffer.

        Raises:
            WriteError: If the port is closed or the write fails.
        """
        if self._serial is None:
            raise WriteError("Serial port is not open")
        try:
            written = self._serial.write(data)
            self._serial.flush()
        except (serial.SerialException, OSError) as e:
            raise WriteError(f"Serial write failed: {e}") from e
        return len(data) if written is None else written

    def read_line(self, timeout_s: float) -> bytes | None:
        """Return the next line including its terminator, or None on timeout."""
        if self._serial is None:
            raise ReadError("Serial port is not open")

        deadline = time.monotonic() + timeout_s
        while True:
            newline = self._rx.find(b"\n")
            if newline >= 0:
                line = bytes(self._rx[: newline + 1])
                del self._rx[: newline + 1]
                return line

            if time.monotonic() >= deadline:
                return None

            try:
                chunk = self._serial.read(self._serial.in_waiting or 1)
            except (serial.SerialException, OSError) as e:
                raise ReadError(f"Serial read failed: {e}") from e
            if chunk:
                self._rx.extend(chunk)
                if len(self._rx) > MAX_LINE_LENGTH:
                    logger.warning(f"Discarding {len(self._rx)} bytes without newline")
                    self._rx.clear()

    def close(self) -> None:
        """Close the port if open. Safe to call when open() failed."""
        if self._serial is not None:
            name = self._serial.name
            if self._serial.is_open:
                self._serial.close()
            logger.info(f"Closed {name}")
        self._serial = None
        self._rx.clear()
