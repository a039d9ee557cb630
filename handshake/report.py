"""Handshake reporting for mrbwrite."""

from dataclasses import dataclass

from common.report import Report
from handshake.sequencer import HandshakeResult


@dataclass
class HandshakeReport(Report):
    """Report after the handshake completes or fails.

    When connected=True, result is required.
    When connected=False, error should be set.
    """

    connected: bool
    result: HandshakeResult | None = None
    error: Exception | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.connected and self.result is None:
            raise ValueError("result is required when connected=True")

    def print(self) -> None:
        """Print the handshake report."""
        if self.connected:
            assert self.result is not None
            r = self.result
            print(f"Handshake: SUCCESS ({r.banner}, probes={r.probe_attempts})")
            if r.version is not None:
                print(f"Version: {r.version}")
            else:
                print("Version: (no reply)")
        else:
            print(f"Handshake: FAILED ({self.error})")

    def success(self) -> bool:
        """Return True if the board reached ready."""
        return self.connected
