#!/usr/bin/env python3
"""Write mruby/c bytecode to a board over serial and run it."""

import argparse
import logging
import os
import sys
import tempfile
from enum import IntEnum
from pathlib import Path

from common.compiler import CompileError, compile_source, is_source
from common.connection import ConnectionConfig
from common.device import list_ports
from common.image import BytecodeImage, load_images
from common.protocol import DEFAULT_BAUDRATE, DEFAULT_PORT, TRACE
from handshake.report import HandshakeReport
from session.controller import SessionController
from session.report import SessionReport
from session.result import Phase

logger = logging.getLogger(__name__)

ENV_PORT = "MRBWRITE_PORT"
ENV_BAUDRATE = "MRBWRITE_BAUDRATE"


class ExitCode(IntEnum):
    """Exit codes for mrbwrite."""

    SUCCESS = 0
    NO_BYTECODE = 1  # No valid bytecode file given
    CONNECT_FAILED = 2  # Port could not be opened
    HANDSHAKE_FAILED = 3  # Board never reported ready
    UPLOAD_FAILED = 4  # Upload or execute failed


_PHASE_EXIT_CODES = {
    Phase.VALIDATE: ExitCode.NO_BYTECODE,
    Phase.CONNECT: ExitCode.CONNECT_FAILED,
    Phase.HANDSHAKE: ExitCode.HANDSHAKE_FAILED,
    Phase.UPLOAD: ExitCode.UPLOAD_FAILED,
    Phase.EXECUTE: ExitCode.UPLOAD_FAILED,
}


def _configure_logging(verbosity: int) -> None:
    level = {0: logging.INFO, 1: logging.DEBUG}.get(verbosity, TRACE)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_ports() -> int:
    ports = list_ports()
    if not ports:
        print("No serial ports found")
        return ExitCode.SUCCESS
    print("Available serial ports:")
    for index, port in enumerate(ports, start=1):
        print(f"  {index}. {port.path} - {port.description}")
    return ExitCode.SUCCESS


def load_bytecode(files: list[str], mrbc: str | None, work_dir: Path) -> BytecodeImage | None:
    """Compile sources if requested, then load and combine bytecode files."""
    paths: list[Path] = []
    for file in files:
        path = Path(file)
        if is_source(path):
            if mrbc is None:
                logger.warning(f"Skipping {path}: source file (use --mrbc to compile)")
                continue
            path = compile_source(path, work_dir, mrbc)
        paths.append(path)
    return load_images(paths)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Write mruby/c bytecode to a board and execute it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s app.mrb                         Write to /dev/ttyUSB0 at 19200 baud
  %(prog)s -p /dev/ttyACM0 -b 115200 a.mrb b.mrb
  %(prog)s --mrbc mrbc main.rb             Compile then write
  %(prog)s -l                              List serial ports
""",
    )
    parser.add_argument("files", nargs="*", help="Bytecode (.mrb) or source (.rb) files")
    parser.add_argument(
        "-p",
        "--port",
        type=str,
        default=os.environ.get(ENV_PORT, DEFAULT_PORT),
        help=f"Serial port (default: ${ENV_PORT} or {DEFAULT_PORT})",
    )
    parser.add_argument(
        "-b",
        "--baudrate",
        type=int,
        default=os.environ.get(ENV_BAUDRATE, str(DEFAULT_BAUDRATE)),
        help=f"Baud rate (default: ${ENV_BAUDRATE} or {DEFAULT_BAUDRATE})",
    )
    parser.add_argument("-l", "--list", action="store_true", help="List serial ports and exit")
    parser.add_argument(
        "--probe-attempts",
        type=int,
        default=None,
        help="Give up after this many banner probes (default: wait forever)",
    )
    parser.add_argument(
        "--probe-deadline",
        type=float,
        default=None,
        help="Give up waiting for the board after this many seconds (default: wait forever)",
    )
    parser.add_argument(
        "--require-version",
        action="store_true",
        help="Wait until the board reports a RITE0300 runtime",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Send the payload even if the write command is not acknowledged",
    )
    parser.add_argument("--mrbc", type=str, default=None, help="mrbc compiler for .rb files")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for debug, -vv for wire trace"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.list:
        return _print_ports()

    if not args.files:
        parser.print_usage(sys.stderr)
        logger.error("At least one file is required")
        return ExitCode.NO_BYTECODE

    try:
        config = ConnectionConfig(
            port=args.port,
            baudrate=args.baudrate,
            max_probe_attempts=args.probe_attempts,
            probe_deadline_s=args.probe_deadline,
        )
    except ValueError as e:
        parser.error(str(e))

    with tempfile.TemporaryDirectory(prefix="mrbwrite-") as work_dir:
        try:
            image = load_bytecode(args.files, args.mrbc, Path(work_dir))
        except (OSError, CompileError) as e:
            logger.error(f"Failed to load bytecode: {e}")
            return ExitCode.NO_BYTECODE

    if image is None:
        logger.error("No valid bytecode file given")
        return ExitCode.NO_BYTECODE

    controller = SessionController(require_version=args.require_version, strict=not args.lenient)
    result = controller.run(config, image)

    if result.handshake is not None:
        HandshakeReport(connected=True, result=result.handshake).print()
    elif result.phase is Phase.HANDSHAKE:
        HandshakeReport(connected=False, error=result.error).print()
    SessionReport(result=result).print()

    if result.success:
        return ExitCode.SUCCESS
    assert result.phase is not None
    return _PHASE_EXIT_CODES[result.phase]


if __name__ == "__main__":
    sys.exit(main())
