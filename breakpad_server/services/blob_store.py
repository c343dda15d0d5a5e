"""Filesystem store for binary content addressed by relative keys."""

import logging
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from breakpad_server.exceptions import RecordNotFoundException, StorageException
from breakpad_server.utils.fs import atomic_write, atomic_write_stream

logger = logging.getLogger(__name__)


class BlobStore:
    """Reads and writes files below a root directory.

    Keys are relative POSIX paths such as ``"2026-10-16.10.00.00.42.1/upload_file_minidump"``.
    Parent directories are created on write. Every write lands through a
    temporary file in the target directory followed by os.replace(), so a
    reader sees either the previous content or the new content.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Map a key to its absolute path below the root.

        Raises:
            StorageException: If the key is absolute or escapes the root
        """
        relative = PurePosixPath(key)
        if not key or relative.is_absolute() or ".." in relative.parts:
            raise StorageException(f"resolve blob key '{key}'", "key must stay below the storage root")
        return self.root.joinpath(*relative.parts)

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def write(self, key: str, data: bytes) -> Path:
        """Write bytes to a key, replacing any previous content."""
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(path, data, path.parent)
        except OSError as e:
            raise StorageException(f"write blob '{key}'", str(e)) from e

        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path

    def write_stream(self, key: str, stream: BinaryIO) -> int:
        """Copy a stream to a key without buffering it in memory.

        Returns:
            Number of bytes written
        """
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            size = atomic_write_stream(path, stream, path.parent)
        except OSError as e:
            raise StorageException(f"write blob '{key}'", str(e)) from e

        logger.debug("Streamed %d bytes to %s", size, path)
        return size

    def read(self, key: str) -> bytes:
        """Read the full content of a key.

        Raises:
            RecordNotFoundException: If nothing is stored under the key
            StorageException: On any other I/O failure
        """
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise RecordNotFoundException("File", key) from e
        except OSError as e:
            raise StorageException(f"read blob '{key}'", str(e)) from e

    def open_for_streaming(self, key: str) -> BinaryIO:
        """Open a key for reading. The caller closes the returned file."""
        path = self.path_for(key)
        try:
            return path.open("rb")
        except FileNotFoundError as e:
            raise RecordNotFoundException("File", key) from e
        except OSError as e:
            raise StorageException(f"open blob '{key}'", str(e)) from e
