"""Handshake package for mrbwrite.

Contains the board readiness handshake:
- sequencer: HandshakeSequencer state machine, HandshakePhase, HandshakeResult
- report: HandshakeReport
"""

from handshake.report import HandshakeReport
from handshake.sequencer import (
    HandshakeError,
    HandshakePhase,
    HandshakeResult,
    HandshakeSequencer,
)

__all__ = [
    "HandshakeError",
    "HandshakePhase",
    "HandshakeReport",
    "HandshakeResult",
    "HandshakeSequencer",
]
