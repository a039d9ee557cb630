"""Wrapper around the external mruby compiler."""

import logging
import subprocess
from pathlib import Path

from common.connection import MrbwriteError

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".rb"
BYTECODE_SUFFIX = ".mrb"


class CompileError(MrbwriteError):
    """Raised when mrbc fails or cannot be run."""

    pass


def is_source(path: Path | str) -> bool:
    """Return True if path names a Ruby source file."""
    return Path(path).suffix == SOURCE_SUFFIX


def compile_source(source: Path | str, out_dir: Path | str, mrbc: str = "mrbc") -> Path:
    """Compile source with mrbc into out_dir. Returns the .mrb path."""
    source = Path(source)
    output = Path(out_dir) / source.with_suffix(BYTECODE_SUFFIX).name
    cmd = [mrbc, "-o", str(output), str(source)]
    logger.debug(f"Running {' '.join(cmd)}")
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise CompileError(f"Cannot run {mrbc}: {e}") from e
    if proc.returncode != 0:
        raise CompileError(
            f"{mrbc} failed on {source} (exit {proc.returncode}): {proc.stderr.strip()}"
        )
    logger.info(f"Compiled {source} -> {output}")
    return output
