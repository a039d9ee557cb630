"""Board handshake for mrbwrite.

Brings the board console from an unknown state (mid-boot, idle at a prompt,
or holding stale output) to ready:
  1. PROBE_BANNER: send an empty line until a reply starts with +OK mruby/c
  2. VERSION_CHECK: query the firmware version (informational)
  3. READY

The sequencer is an explicit state machine: step() performs one exchange, and
run() steps until READY or until the retry budget or deadline is exhausted.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from common.channel import CommandChannel
from common.connection import ProtocolError
from common.protocol import (
    BANNER_PREFIX,
    CMD_VERSION,
    DEFAULT_PROBE_TIMEOUT_S,
    DEFAULT_RESPONSE_TIMEOUT_S,
    PROBE_TERMINATOR,
    VERSION_MARKER,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class HandshakeError(ProtocolError):
    """Raised when the board never reached ready within the budget."""

    pass


class HandshakePhase(Enum):
    """Phase of the handshake state machine."""

    PROBE_BANNER = "probe_banner"
    VERSION_CHECK = "version_check"
    READY = "ready"
    FAILED = "failed"


@dataclass
class HandshakeResult:
    """Outcome of a completed handshake."""

    probe_attempts: int
    banner: str
    version: str | None
    version_attempts: int = 0
    elapsed_s: float = 0.0

    @property
    def version_confirmed(self) -> bool:
        return self.version is not None and VERSION_MARKER in self.version


class HandshakeSequencer:
    """Drives the board console to the ready state.

    Args:
        channel: Channel to the board.
        probe_timeout_s: Wait per banner probe.
        response_timeout_s: Wait for the version reply.
        max_attempts: Maximum exchanges per phase before giving up (None = unbounded).
        deadline_s: Maximum time to wait for the banner, and for RITE0300 when
            require_version is set (None = unbounded).
        require_version: Repeat the version query until it reports RITE0300.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        channel: CommandChannel,
        probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S,
        response_timeout_s: float = DEFAULT_RESPONSE_TIMEOUT_S,
        max_attempts: int | None = None,
        deadline_s: float | None = None,
        require_version: bool = False,
        clock: Clock = time.monotonic,
    ) -> None:
        self._channel = channel
        self._probe_timeout_s = probe_timeout_s
        self._response_timeout_s = response_timeout_s
        self._max_attempts = max_attempts
        self._deadline_s = deadline_s
        self._require_version = require_version
        self._clock = clock

        self.phase = HandshakePhase.PROBE_BANNER
        self.probe_attempts = 0
        self.version_attempts = 0
        self.banner: str | None = None
        self.version: str | None = None
        self.failure: str | None = None
        self._start: float | None = None

    @property
    def attempts(self) -> int:
        """Total exchanges performed so far."""
        return self.probe_attempts + self.version_attempts

    def _elapsed(self) -> float:
        if self._start is None:
            return 0.0
        return self._clock() - self._start

    def _deadline_applies(self) -> bool:
        if self._deadline_s is None:
            return False
        return self.phase is HandshakePhase.PROBE_BANNER or self._require_version

    def _wait(self, timeout_s: float) -> float:
        """Return timeout_s capped to the time left before the deadline."""
        if not self._deadline_applies():
            return timeout_s
        return min(timeout_s, self._deadline_s - self._elapsed())

    def _budget_exhausted(self) -> str | None:
        """Return a reason if no further exchange is allowed, else None.

        max_attempts applies to each phase separately. The deadline bounds the
        banner probe, and the version check only when require_version is set:
        a board that already sent its banner gets its one version query.
        """
        if self._max_attempts is not None:
            if self.phase is HandshakePhase.PROBE_BANNER:
                if self.probe_attempts >= self._max_attempts:
                    return f"no banner after {self.probe_attempts} probes"
            elif self.version_attempts >= self._max_attempts:
                return f"no {VERSION_MARKER} after {self.version_attempts} version queries"
        if self._deadline_applies() and self._elapsed() >= self._deadline_s:
            return f"no ready board within {self._deadline_s}s"
        return None

    def _probe_banner(self) -> HandshakePhase:
        self.probe_attempts += 1
        response = self._channel.send_and_receive(
            "", self._wait(self._probe_timeout_s), terminator=PROBE_TERMINATOR
        )
        if response.startswith(BANNER_PREFIX):
            self.banner = response.line
            logger.info(f"Board ready after {self.probe_attempts} probe(s): {response.line}")
            return HandshakePhase.VERSION_CHECK

        # Boot noise, stale output and silence are all retried
        if response.timed_out:
            logger.debug(f"Probe {self.probe_attempts}: no reply")
        else:
            logger.debug(f"Probe {self.probe_attempts}: ignoring {response.line!r}")
        return HandshakePhase.PROBE_BANNER

    def _check_version(self) -> HandshakePhase:
        self.version_attempts += 1
        response = self._channel.send_and_receive(
            CMD_VERSION, self._wait(self._response_timeout_s)
        )
        if response.timed_out:
            logger.warning("No reply to version query")
        else:
            self.version = response.line
            logger.info(f"Firmware version: {response.line}")

        if VERSION_MARKER in response:
            return HandshakePhase.READY
        if self._require_version:
            logger.debug(f"Version reply lacks {VERSION_MARKER}, retrying")
            return HandshakePhase.VERSION_CHECK
        if not response.timed_out:
            logger.warning(f"Version reply lacks {VERSION_MARKER}, continuing")
        return HandshakePhase.READY

    def step(self) -> HandshakePhase:
        """Perform one exchange and return the new phase.

        Returns FAILED (without touching the transport) once the retry budget
        or deadline is exhausted.
        """
        if self._start is None:
            self._start = self._clock()

        if self.phase in (HandshakePhase.READY, HandshakePhase.FAILED):
            return self.phase

        reason = self._budget_exhausted()
        if reason is not None:
            self.failure = reason
            self.phase = HandshakePhase.FAILED
            logger.warning(f"Handshake failed: {reason}")
            return self.phase

        match self.phase:
            case HandshakePhase.PROBE_BANNER:
                self.phase = self._probe_banner()
            case HandshakePhase.VERSION_CHECK:
                self.phase = self._check_version()
        return self.phase

    def run(self) -> HandshakeResult:
        """Step until READY.

        Blocks indefinitely if neither max_attempts nor deadline_s is set and
        the board never answers.

        Raises:
            HandshakeError: If the budget is exhausted first.
            WriteError: If a probe cannot be sent.
        """
        logger.info("Waiting for board...")
        while self.step() not in (HandshakePhase.READY, HandshakePhase.FAILED):
            pass

        if self.phase is HandshakePhase.FAILED:
            raise HandshakeError(f"Handshake: {self.failure}")

        assert self.banner is not None
        return HandshakeResult(
            probe_attempts=self.probe_attempts,
            banner=self.banner,
            version=self.version,
            version_attempts=self.version_attempts,
            elapsed_s=self._elapsed(),
        )
