"""Session package for mrbwrite.

This package owns one flashing session end to end:
- Transport lifetime (open, guaranteed close)
- Handshake, upload and execute sequencing
- Session state tracking and failure attribution by phase
"""

from session.controller import SessionController
from session.report import SessionReport
from session.result import Phase, SessionError, SessionResult

__all__ = [
    "Phase",
    "SessionController",
    "SessionError",
    "SessionReport",
    "SessionResult",
]
