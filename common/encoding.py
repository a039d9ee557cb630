"""Console line encoding/decoding for mrbwrite.

Contains:
- Response: One received console line, or the timeout marker
- encode_command: Command text plus terminator to wire bytes
- decode_line: Raw line bytes to trimmed text
- encode_write_command: The length announcement for a binary payload
"""

from dataclasses import dataclass

from common.protocol import CMD_WRITE, COMMAND_TERMINATOR

ENCODING = "ascii"


@dataclass(frozen=True)
class Response:
    """A single console line with terminators trimmed.

    timed_out is True when no line arrived in time; line is then empty.
    """

    line: str
    timed_out: bool = False

    @classmethod
    def timeout(cls) -> "Response":
        """Return the timeout marker."""
        return cls(line="", timed_out=True)

    def startswith(self, prefix: str) -> bool:
        """Return True if a line was received and starts with prefix."""
        return not self.timed_out and self.line.startswith(prefix)

    def __contains__(self, marker: str) -> bool:
        return not self.timed_out and marker in self.line


def encode_command(command: str, terminator: str = COMMAND_TERMINATOR) -> bytes:
    """Encode a console command with its line terminator."""
    return (command + terminator).encode(ENCODING)


def decode_line(raw: bytes) -> str:
    """Decode a console line, trimming trailing CR/LF.

    Console noise during boot may not be ASCII; undecodable bytes are replaced.
    """
    return raw.decode(ENCODING, errors="replace").rstrip("\r\n")


def encode_write_command(length: int) -> str:
    """Return the `write <N>` command announcing an N-byte payload."""
    if length < 0:
        raise ValueError(f"payload length must be non-negative, got {length}")
    return f"{CMD_WRITE} {length}"
