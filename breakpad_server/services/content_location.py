"""Interpretation of stored file column values.

A stored file value is one of three things: inline content, a path
relative to the storage root, or nothing at all. Databases written by
older releases kept short relative paths in the blob column itself, so a
short byte value is read as a path.
"""

from dataclasses import dataclass
from enum import Enum

DEFAULT_INLINE_PATH_MAX_LENGTH = 128


class ContentKind(str, Enum):
    """Where the bytes of a stored value live."""

    INLINE = "INLINE"
    PATH = "PATH"
    ABSENT = "ABSENT"


@dataclass(frozen=True)
class ContentLocation:
    """Resolved location of a stored value.

    ``data`` is set for INLINE, ``path`` for PATH, neither for ABSENT.
    """

    kind: ContentKind
    data: bytes | None = None
    path: str | None = None

    @classmethod
    def inline(cls, data: bytes) -> "ContentLocation":
        return cls(ContentKind.INLINE, data=data)

    @classmethod
    def at_path(cls, path: str) -> "ContentLocation":
        return cls(ContentKind.PATH, path=path)

    @classmethod
    def absent(cls) -> "ContentLocation":
        return cls(ContentKind.ABSENT)


def resolve_content_location(
    value: bytes | bytearray | memoryview | str | None,
    inline_path_max_length: int = DEFAULT_INLINE_PATH_MAX_LENGTH,
) -> ContentLocation:
    """Decide whether a stored value is inline content or a relative path.

    Text values are always paths. Byte values no longer than
    ``inline_path_max_length`` are decoded as UTF-8 paths; anything longer
    is inline content. A threshold of 0 turns the short-blob rule off so
    every byte value is inline. Empty and missing values are ABSENT, as are
    short byte values that do not decode.
    """
    if value is None:
        return ContentLocation.absent()

    if isinstance(value, str):
        return ContentLocation.at_path(value) if value else ContentLocation.absent()

    data = bytes(value)
    if not data:
        return ContentLocation.absent()

    if len(data) > inline_path_max_length:
        return ContentLocation.inline(data)

    try:
        return ContentLocation.at_path(data.decode("utf-8"))
    except UnicodeDecodeError:
        return ContentLocation.absent()
