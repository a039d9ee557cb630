"""Session result types for mrbwrite.

Contains:
- Phase: The session phase an error is attributed to
- SessionError: Raised when a session phase fails
- SessionResult: Result from SessionController.run
"""

from dataclasses import dataclass, field
from enum import Enum

from common.connection import MrbwriteError, SessionState
from common.encoding import Response
from handshake.sequencer import HandshakeResult
from upload.uploader import UploadResult


class Phase(Enum):
    """Session phase, used to report where a session failed."""

    VALIDATE = "validate"
    CONNECT = "connect"
    HANDSHAKE = "handshake"
    UPLOAD = "upload"
    EXECUTE = "execute"


class SessionError(MrbwriteError):
    """Raised when a session phase fails.

    The original exception, if any, is chained as __cause__.
    """

    def __init__(self, phase: Phase, message: str) -> None:
        super().__init__(f"{phase.value}: {message}")
        self.phase = phase


@dataclass
class SessionResult:
    """Result from a flashing session.

    Attributes:
        success: True if the image was uploaded and executed.
        phase: Phase that failed, or None on success.
        error: SessionError if the session failed.
        states: Every SessionState entered, in order.
        handshake: Handshake outcome, once the board was ready.
        upload: Upload outcome, once the payload was sent.
        execute_reply: Board reply to `execute`.
        elapsed_s: Total session duration in seconds.
    """

    success: bool
    phase: Phase | None = None
    error: SessionError | None = None
    states: list[SessionState] = field(default_factory=list)
    handshake: HandshakeResult | None = None
    upload: UploadResult | None = None
    execute_reply: Response | None = None
    elapsed_s: float = 0.0

    @property
    def final_state(self) -> SessionState:
        return self.states[-1] if self.states else SessionState.DISCONNECTED

    @property
    def warnings(self) -> list[str]:
        warnings = list(self.upload.warnings) if self.upload else []
        if self.execute_reply is not None and self.execute_reply.timed_out:
            warnings.append("no reply to execute command")
        return warnings

