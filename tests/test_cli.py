"""Tests for the mrbwrite command line."""

from pathlib import Path
from types import SimpleNamespace

import pytest

import mrbwrite
from common.connection import PortConnectionError
from common.device import PortInfo
from mrbwrite import ExitCode, build_parser, main
from session.controller import SessionController
from conftest import FakeClock, MockTransport, SimulatedBoard, image_bytes


@pytest.fixture
def app_file(tmp_path: Path) -> Path:
    path = tmp_path / "app.mrb"
    path.write_bytes(image_bytes(54))
    return path


def _use_transport(monkeypatch: pytest.MonkeyPatch, transport: MockTransport) -> SimpleNamespace:
    """Route main() sessions to transport; records the controller options."""
    seen = SimpleNamespace(kwargs=None)

    def controller(**kwargs) -> SessionController:
        seen.kwargs = kwargs
        return SessionController(
            transport_factory=lambda: transport, clock=transport.clock, **kwargs
        )

    monkeypatch.setattr(mrbwrite, "SessionController", controller)
    return seen


@pytest.mark.unit
class TestParser:
    """Tests for argument defaults."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MRBWRITE_PORT", raising=False)
        monkeypatch.delenv("MRBWRITE_BAUDRATE", raising=False)
        args = build_parser().parse_args(["app.mrb"])
        assert args.port == "/dev/ttyUSB0"
        assert args.baudrate == 19200
        assert args.lenient is False

    def test_environment_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MRBWRITE_PORT", "/dev/ttyACM0")
        monkeypatch.setenv("MRBWRITE_BAUDRATE", "115200")
        args = build_parser().parse_args(["app.mrb"])
        assert args.port == "/dev/ttyACM0"
        assert args.baudrate == 115200

    def test_invalid_environment_baudrate(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("MRBWRITE_BAUDRATE", "fast")
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["app.mrb"])
        assert exc_info.value.code == 2
        assert "invalid int value" in capsys.readouterr().err


@pytest.mark.unit
class TestMain:
    """Tests for main() exit codes."""

    def test_no_files(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == ExitCode.NO_BYTECODE
        assert "usage" in capsys.readouterr().err

    def test_not_bytecode(self, tmp_path: Path) -> None:
        path = tmp_path / "app.bin"
        path.write_bytes(b"\x00\x01\x02\x03")
        assert main([str(path)]) == ExitCode.NO_BYTECODE

    def test_missing_file(self, tmp_path: Path) -> None:
        assert main([str(tmp_path / "missing.mrb")]) == ExitCode.NO_BYTECODE

    def test_source_without_compiler(self, tmp_path: Path) -> None:
        path = tmp_path / "main.rb"
        path.write_text("puts 1\n")
        assert main([str(path)]) == ExitCode.NO_BYTECODE

    def test_success(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        app_file: Path,
    ) -> None:
        board = SimulatedBoard(clock=FakeClock())
        seen = _use_transport(monkeypatch, board)

        assert main(["-p", "/dev/ttyACM0", "-b", "115200", str(app_file)]) == ExitCode.SUCCESS
        assert board.open_calls == [("/dev/ttyACM0", 115200)]
        assert bytes(board.payload) == app_file.read_bytes()
        assert seen.kwargs == {"require_version": False, "strict": True}

        out = capsys.readouterr().out
        assert "Handshake: SUCCESS" in out
        assert "Session: SUCCESS (54 bytes" in out

    def test_files_are_concatenated(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, app_file: Path
    ) -> None:
        second = tmp_path / "lib.mrb"
        second.write_bytes(image_bytes(10, fill=0x01))
        board = SimulatedBoard(clock=FakeClock())
        _use_transport(monkeypatch, board)

        assert main([str(app_file), str(second)]) == ExitCode.SUCCESS
        assert board.writes[2] == b"write 64\r\n"

    def test_lenient_flag(self, monkeypatch: pytest.MonkeyPatch, app_file: Path) -> None:
        board = SimulatedBoard(write_ack=None, clock=FakeClock())
        seen = _use_transport(monkeypatch, board)
        assert main(["--lenient", "--require-version", str(app_file)]) == ExitCode.SUCCESS
        assert seen.kwargs == {"require_version": True, "strict": False}

    def test_connect_failed(self, monkeypatch: pytest.MonkeyPatch, app_file: Path) -> None:
        port = MockTransport(clock=FakeClock(), open_error=PortConnectionError("busy"))
        _use_transport(monkeypatch, port)
        assert main([str(app_file)]) == ExitCode.CONNECT_FAILED

    def test_handshake_failed(
        self,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
        app_file: Path,
    ) -> None:
        silent = MockTransport(clock=FakeClock())
        _use_transport(monkeypatch, silent)
        assert main(["--probe-attempts", "2", str(app_file)]) == ExitCode.HANDSHAKE_FAILED
        assert silent.writes == [b"\n", b"\n"]
        assert "Handshake: FAILED" in capsys.readouterr().out

    def test_upload_failed(self, monkeypatch: pytest.MonkeyPatch, app_file: Path) -> None:
        board = SimulatedBoard(write_ack=b"-ERR\r\n", clock=FakeClock())
        _use_transport(monkeypatch, board)
        assert main([str(app_file)]) == ExitCode.UPLOAD_FAILED

    def test_invalid_probe_attempts(self, app_file: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--probe-attempts", "0", str(app_file)])
        assert exc_info.value.code == 2


@pytest.mark.unit
class TestListPorts:
    """Tests for -l."""

    def test_list(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        ports = [PortInfo("/dev/ttyUSB0", "CP2102 USB to UART")]
        monkeypatch.setattr(mrbwrite, "list_ports", lambda: ports)
        assert main(["-l"]) == ExitCode.SUCCESS
        out = capsys.readouterr().out
        assert "Available serial ports:" in out
        assert "  1. /dev/ttyUSB0 - CP2102 USB to UART" in out

    def test_list_empty(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        monkeypatch.setattr(mrbwrite, "list_ports", lambda: [])
        assert main(["-l"]) == ExitCode.SUCCESS
        assert "No serial ports found" in capsys.readouterr().out
