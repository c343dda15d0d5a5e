"""Filesystem utilities."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

_COPY_CHUNK_SIZE = 64 * 1024


def atomic_write(target_path: Path, content: bytes, staging_dir: Path) -> None:
    """Write content atomically using a temp file and rename.

    Creates a temporary file in staging_dir, writes content, then
    atomically replaces target_path via os.replace(). If any step fails,
    the temp file is cleaned up and the exception propagates.

    Args:
        target_path: Final destination path
        content: Bytes to write
        staging_dir: Directory for the temporary file (must be on the same
            filesystem as target_path for os.replace to work)
    """
    fd, temp_path = tempfile.mkstemp(dir=staging_dir, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(temp_path, target_path)
    except BaseException:
        _remove_quietly(temp_path)
        raise


def atomic_write_stream(target_path: Path, stream: BinaryIO, staging_dir: Path) -> int:
    """Copy a readable stream to target_path atomically.

    Same guarantees as atomic_write, without holding the whole payload in
    memory.

    Returns:
        Number of bytes written
    """
    fd, temp_path = tempfile.mkstemp(dir=staging_dir, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            shutil.copyfileobj(stream, f, _COPY_CHUNK_SIZE)
            size = f.tell()
        os.replace(temp_path, target_path)
    except BaseException:
        _remove_quietly(temp_path)
        raise
    return size


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except OSError:
        pass
