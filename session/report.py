"""Session reporting for mrbwrite.

Contains:
- SessionReport: Report after a flashing session completes
"""

from dataclasses import dataclass

from common.report import Report
from session.result import SessionResult


@dataclass
class SessionReport(Report):
    """Report after a flashing session completes."""

    result: SessionResult

    def print(self) -> None:
        """Print the session report."""
        r = self.result

        if not r.success:
            phase = r.phase.value if r.phase else "unknown"
            print(f"Session: FAILED (phase: {phase}, {r.error})")
            if r.upload is not None:
                print(f"         ({r.upload.bytes_sent}/{r.upload.size} bytes sent)")
            return

        assert r.upload is not None
        print(f"Session: SUCCESS ({r.upload.bytes_sent} bytes in {r.elapsed_s:.1f}s)")
        if r.execute_reply is not None and not r.execute_reply.timed_out:
            print(f"Execute: {r.execute_reply.line}")
        for warning in r.warnings:
            print(f"Warning: {warning}")

    def success(self) -> bool:
        """Return True if the image was uploaded and executed."""
        return self.result.success
