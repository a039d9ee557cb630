"""Bytecode image handling for mrbwrite.

Contains:
- BytecodeImage: An immutable, validated bytecode image
- is_bytecode: Check for the RITE marker
- load_image: Read one file as a bytecode image
- load_images: Read several files and concatenate the valid ones
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from common.connection import InvalidImageError
from common.protocol import BYTECODE_MAGIC

logger = logging.getLogger(__name__)


def is_bytecode(data: bytes) -> bool:
    """Return True if data starts with the bytecode marker."""
    return data[: len(BYTECODE_MAGIC)] == BYTECODE_MAGIC


@dataclass(frozen=True)
class BytecodeImage:
    """A bytecode image; construction fails without the RITE marker."""

    data: bytes

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))
        if not is_bytecode(self.data):
            raise InvalidImageError(
                f"Not a bytecode image: expected {BYTECODE_MAGIC!r}, got {self.data[:4]!r}"
            )

    def __len__(self) -> int:
        return len(self.data)

    @classmethod
    def concatenate(cls, images: Iterable["BytecodeImage"]) -> "BytecodeImage":
        """Join images byte for byte, preserving order."""
        images = list(images)
        if not images:
            raise InvalidImageError("No bytecode images to concatenate")
        if len(images) == 1:
            return images[0]
        return cls(b"".join(image.data for image in images))


def load_image(path: Path | str) -> BytecodeImage | None:
    """Load a file as a bytecode image.

    Returns None (with a warning) if the file lacks the marker.
    Raises OSError if the file cannot be read.
    """
    path = Path(path)
    data = path.read_bytes()
    if not is_bytecode(data):
        logger.warning(f"Skipping {path}: not a bytecode file")
        return None
    logger.debug(f"Loaded {path} ({len(data)} bytes)")
    return BytecodeImage(data)


def load_images(paths: Iterable[Path | str]) -> BytecodeImage | None:
    """Load every valid file and concatenate them in argument order.

    Returns None if no file is a bytecode image.
    """
    images = [image for image in (load_image(p) for p in paths) if image is not None]
    if not images:
        return None
    combined = BytecodeImage.concatenate(images)
    if len(images) > 1:
        logger.info(f"Combined {len(images)} images ({len(combined)} bytes)")
    return combined
