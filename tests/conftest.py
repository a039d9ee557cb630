"""pytest configuration and fixtures for mrbwrite tests.

Provides:
- FakeClock: Manually advanced monotonic clock
- MockTransport: Scripted transport replaying queued lines and timeouts
- SimulatedBoard: Transport that answers like an mruby/c console
- Markers for unit vs integration tests
"""

from collections import deque
from collections.abc import Iterable

import pytest

from common.connection import PortConnectionError, WriteError

BANNER = b"+OK mruby/c PSG console\r\n"


class FakeClock:
    """Monotonic clock advanced only by the test (or by transport timeouts)."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockTransport:
    """Transport that replays a script of lines.

    Each read_line() pops the next scripted item: bytes are returned as a
    line, None is a timeout. An exhausted script times out. Timeouts advance
    the optional clock by the requested timeout.
    """

    def __init__(
        self,
        lines: Iterable[bytes | None] = (),
        clock: FakeClock | None = None,
        open_error: Exception | None = None,
        write_error: Exception | None = None,
    ) -> None:
        self.lines: deque[bytes | None] = deque(lines)
        self.clock = clock
        self.open_error = open_error
        self.write_error = write_error
        self.writes: list[bytes] = []
        self.open_calls: list[tuple[str, int]] = []
        self.close_calls = 0
        self.read_timeouts: list[float] = []

    def open(self, port: str, baudrate: int) -> None:
        self.open_calls.append((port, baudrate))
        if self.open_error is not None:
            raise self.open_error

    def write_bytes(self, data: bytes, /) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))
        return len(data)

    def read_line(self, timeout_s: float) -> bytes | None:
        self.read_timeouts.append(timeout_s)
        item = self.lines.popleft() if self.lines else None
        if item is None and self.clock is not None:
            self.clock.advance(timeout_s)
        return item

    def close(self) -> None:
        self.close_calls += 1

    @property
    def written(self) -> bytes:
        """All bytes written, in order."""
        return b"".join(self.writes)


class SimulatedBoard(MockTransport):
    """Transport that answers like a board running the mruby/c console.

    The banner is sent in reply to probe number boot_probes; earlier probes
    time out. After `write N` the next N bytes are taken as payload.
    """

    def __init__(
        self,
        boot_probes: int = 1,
        version: bytes | None = b"mruby/c v3.3 RITE0300 MRBW1.2\r\n",
        write_ack: bytes | None = b"+OK Write bytecode\r\n",
        transfer_ack: bytes | None = b"+DONE\r\n",
        execute_ack: bytes | None = b"+OK Execute mruby/c.\r\n",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.boot_probes = boot_probes
        self.version = version
        self.write_ack = write_ack
        self.transfer_ack = transfer_ack
        self.execute_ack = execute_ack
        self.probes = 0
        self.payload = bytearray()
        self._payload_remaining = 0

    def _reply(self, line: bytes | None) -> None:
        self.lines.append(line)

    def write_bytes(self, data: bytes, /) -> int:
        written = super().write_bytes(data)
        if self._payload_remaining > 0:
            self.payload.extend(data)
            self._payload_remaining -= len(data)
            if self._payload_remaining <= 0:
                self._reply(self.transfer_ack)
            return written

        command = data.decode("ascii").rstrip("\r\n")
        if command == "":
            self.probes += 1
            self._reply(BANNER if self.probes >= self.boot_probes else None)
        elif command == "version":
            self._reply(self.version)
        elif command.startswith("write "):
            self._payload_remaining = int(command.split()[1])
            self._reply(self.write_ack)
        elif command == "execute":
            self._reply(self.execute_ack)
        else:
            self._reply(b"-ERR\r\n")
        return written


def image_bytes(size: int, fill: int = 0xA5) -> bytes:
    """Return a valid image of exactly size bytes."""
    assert size >= 4
    return b"RITE" + bytes([fill]) * (size - 4)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (uses pyserial loop://)"
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport(clock: FakeClock) -> MockTransport:
    return MockTransport(clock=clock)


@pytest.fixture
def board(clock: FakeClock) -> SimulatedBoard:
    return SimulatedBoard(clock=clock)


@pytest.fixture
def failing_port() -> MockTransport:
    return MockTransport(open_error=PortConnectionError("Failed to open /dev/ttyUSB0: busy"))


@pytest.fixture
def broken_wire() -> MockTransport:
    return MockTransport(write_error=WriteError("Serial write failed: device disconnected"))
