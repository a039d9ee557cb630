"""Session orchestration for mrbwrite.

Contains SessionController, which owns the transport for one flashing
session: open, handshake, upload, execute, close. The transport is closed
exactly once on every path.
"""

import logging
import time
from collections.abc import Callable

from common.channel import CommandChannel
from common.connection import (
    ConnectionConfig,
    InvalidImageError,
    MrbwriteError,
    PortConnectionError,
    ProtocolError,
    SessionState,
)
from common.device import SerialTransport
from common.image import BytecodeImage
from common.protocol import Transport
from handshake.sequencer import Clock, HandshakeSequencer
from session.result import Phase, SessionError, SessionResult
from upload.uploader import BytecodeUploader

logger = logging.getLogger(__name__)

TransportFactory = Callable[[], Transport]


class SessionController:
    """Runs one flashing session per run() call.

    Args:
        transport_factory: Creates an unopened Transport for each session.
        require_version: Passed to HandshakeSequencer.
        strict: Passed to BytecodeUploader.
        clock: Monotonic clock for the probe deadline and timing.
    """

    def __init__(
        self,
        transport_factory: TransportFactory = SerialTransport,
        require_version: bool = False,
        strict: bool = True,
        clock: Clock = time.monotonic,
    ) -> None:
        self._transport_factory = transport_factory
        self._require_version = require_version
        self._strict = strict
        self._clock = clock
        self.state = SessionState.DISCONNECTED
        self._states: list[SessionState] = []

    def _enter(self, state: SessionState) -> None:
        logger.debug(f"Session: {self.state.value} -> {state.value}")
        self.state = state
        self._states.append(state)

    def _require_state(self, state: SessionState, action: str) -> None:
        if self.state is not state:
            raise ProtocolError(f"Cannot {action} in state {self.state.value}")

    def _fail(self, result: SessionResult, phase: Phase, e: Exception) -> SessionResult:
        error = e if isinstance(e, SessionError) else SessionError(phase, str(e))
        if error is not e:
            error.__cause__ = e
        logger.error(f"Session failed during {phase.value}: {e}")
        result.success = False
        result.phase = phase
        result.error = error
        return result

    def _open(self, transport: Transport, config: ConnectionConfig) -> None:
        try:
            transport.open(config.port, config.baudrate)
        except MrbwriteError:
            raise
        except Exception as e:
            raise PortConnectionError(f"Failed to open {config.port}: {e}") from e

    def run(self, config: ConnectionConfig, image: BytecodeImage | bytes) -> SessionResult:
        """Flash image to the board described by config.

        Returns a SessionResult; errors are reported in it, not raised.
        """
        start = self._clock()
        self._states = []
        self.state = SessionState.DISCONNECTED
        self._states.append(self.state)
        result = SessionResult(success=False, states=self._states)

        # Reject invalid images before the transport is touched
        try:
            if not isinstance(image, BytecodeImage):
                image = BytecodeImage(image)
        except InvalidImageError as e:
            return self._fail(result, Phase.VALIDATE, e)

        transport = self._transport_factory()
        phase = Phase.CONNECT
        try:
            self._open(transport, config)
            self._enter(SessionState.CONNECTED)
            logger.info(f"Opened {config.port} at {config.baudrate} baud")
            channel = CommandChannel(transport)

            phase = Phase.HANDSHAKE
            self._enter(SessionState.HANDSHAKE_IN_PROGRESS)
            sequencer = HandshakeSequencer(
                channel,
                probe_timeout_s=config.probe_timeout_s,
                response_timeout_s=config.response_timeout_s,
                max_attempts=config.max_probe_attempts,
                deadline_s=config.probe_deadline_s,
                require_version=self._require_version,
                clock=self._clock,
            )
            result.handshake = sequencer.run()
            self._enter(SessionState.READY)

            phase = Phase.UPLOAD
            self._require_state(SessionState.READY, "upload")
            uploader = BytecodeUploader(
                channel,
                response_timeout_s=config.response_timeout_s,
                strict=self._strict,
            )
            self._enter(SessionState.UPLOADING)
            result.upload = uploader.upload(image)

            phase = Phase.EXECUTE
            self._enter(SessionState.EXECUTING)
            result.execute_reply = uploader.execute()

            result.success = True
        except MrbwriteError as e:
            self._fail(result, phase, e)
        finally:
            transport.close()
            self._enter(SessionState.CLOSED)
            result.elapsed_s = self._clock() - start

        if result.success:
            logger.info(f"Session complete in {result.elapsed_s:.1f}s")
        return result
