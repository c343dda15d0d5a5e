"""Symbol file ingestion and lookup."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from breakpad_server.config import Settings
from breakpad_server.exceptions import (
    RecordNotFoundException,
    StorageException,
    ValidationException,
)
from breakpad_server.models.symbol_file import SymbolFile
from breakpad_server.services.analysis_cache import AnalysisCache
from breakpad_server.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

SYMBOL_INGEST_TOTAL = Counter(
    "breakpad_symbol_ingest_total",
    "Symbol file uploads",
    ["status"],
)

# Only the start of the file is inspected for the header line
HEADER_SCAN_BYTES = 4096

MODULE_HEADER_PATTERN = re.compile(r"^(MODULE) ([^ ]+) ([^ ]+) ([0-9A-Fa-f]+) (.*)")

HEADER_ERROR_MESSAGE = "Could not parse header (expecting MODULE as first line)"


@dataclass(frozen=True)
class SymbolHeader:
    """Natural key parsed from a MODULE line."""

    os: str
    arch: str
    code: str
    name: str


def parse_symbol_header(raw: bytes) -> SymbolHeader:
    """Parse the ``MODULE <os> <arch> <code> <name>`` first line.

    Raises:
        ValidationException: If the header is missing or names an unsafe path
    """
    first_line = raw[:HEADER_SCAN_BYTES].decode("utf-8", errors="replace").split("\n", 1)[0]
    match = MODULE_HEADER_PATTERN.match(first_line.rstrip("\r"))
    if match is None:
        raise ValidationException(HEADER_ERROR_MESSAGE)

    _, os_name, arch, code, name = match.groups()

    if not name.strip():
        raise ValidationException("Symbol file header has an empty module name")

    # name and code become directories below the symbols root
    for label, value in (("name", name), ("code", code)):
        if "/" in value or "\\" in value or value in (".", ".."):
            raise ValidationException(f"Symbol file header has an invalid {label}: {value}")

    return SymbolHeader(os=os_name, arch=arch, code=code, name=name)


class SymbolService:
    """Service for ingesting and reading Breakpad symbol files.

    The symbol text is always written below SYMBOLS_DIR where
    minidump-stackwalk expects it (``{name}/{code}/{name}.sym``); the
    database row additionally keeps the text when FILES_IN_DATABASE is on.
    """

    def __init__(
        self,
        db: Session,
        config: Settings,
        blob_store: BlobStore,
        analysis_cache: AnalysisCache,
    ) -> None:
        """Initialize service with database session and storage collaborators.

        Args:
            db: SQLAlchemy database session
            config: Application settings (storage mode)
            blob_store: Store rooted at the symbols directory
            analysis_cache: Stack trace cache cleared after each ingest
        """
        self.db = db
        self.config = config
        self.blob_store = blob_store
        self.analysis_cache = analysis_cache

    @staticmethod
    def get_key(symbol_file: SymbolFile | SymbolHeader) -> str:
        """Return the blob key of a symbol file relative to the symbols root."""
        file_name = symbol_file.name
        if file_name.lower().endswith(".pdb"):
            file_name = file_name[:-4]
        return str(PurePosixPath(symbol_file.name, symbol_file.code, f"{file_name}.sym"))

    def get_path(self, symbol_file: SymbolFile | SymbolHeader) -> Path:
        """Return the on-disk location of a symbol file."""
        return self.blob_store.path_for(self.get_key(symbol_file))

    def ingest(self, raw: bytes) -> SymbolFile:
        """Store an uploaded symbol file, replacing any file with the same key.

        The previous row for the same (os, name, code, arch) is deleted and
        a new row inserted in a single transaction, so a failed upload leaves
        the previous file in place. The analysis cache is cleared once the
        transaction has committed.

        Args:
            raw: Full symbol file bytes

        Returns:
            The newly created SymbolFile

        Raises:
            ValidationException: If the MODULE header cannot be parsed
            StorageException: If the disk write or the transaction fails
        """
        try:
            header = parse_symbol_header(raw)
        except ValidationException:
            SYMBOL_INGEST_TOTAL.labels(status="invalid").inc()
            raise

        text = raw.decode("utf-8", errors="replace")

        try:
            stmt = (
                select(SymbolFile)
                .where(
                    SymbolFile.os == header.os,
                    SymbolFile.name == header.name,
                    SymbolFile.code == header.code,
                    SymbolFile.arch == header.arch,
                )
                .with_for_update()
            )
            existing = self.db.scalars(stmt).one_or_none()
            if existing is not None:
                logger.info("Replacing symbol file %d (%s/%s)", existing.id, header.name, header.code)
                self.db.delete(existing)
                self.db.flush()

            self.blob_store.write(self.get_key(header), raw)

            symbol_file = SymbolFile(
                os=header.os,
                name=header.name,
                code=header.code,
                arch=header.arch,
                contents=text if self.config.files_in_database else None,
            )
            self.db.add(symbol_file)
            self.db.flush()
            self.db.commit()

        except StorageException:
            self.db.rollback()
            SYMBOL_INGEST_TOTAL.labels(status="error").inc()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            SYMBOL_INGEST_TOTAL.labels(status="error").inc()
            raise StorageException("save symbol file", str(e)) from e

        self.analysis_cache.clear()
        SYMBOL_INGEST_TOTAL.labels(status="success").inc()

        logger.info(
            "Stored symbol file %d: os=%s arch=%s code=%s name=%s",
            symbol_file.id,
            header.os,
            header.arch,
            header.code,
            header.name,
        )
        return symbol_file

    def get_symbol_file(self, symbol_file_id: int) -> SymbolFile:
        """Get a symbol file by ID.

        Raises:
            RecordNotFoundException: If the symbol file doesn't exist
        """
        symbol_file = self.db.get(SymbolFile, symbol_file_id)
        if symbol_file is None:
            raise RecordNotFoundException("Symbol file", str(symbol_file_id))
        return symbol_file

    def list_symbol_files(self, limit: int | None = None, offset: int = 0) -> list[SymbolFile]:
        """List symbol files, newest first."""
        stmt = (
            select(SymbolFile)
            .order_by(SymbolFile.created_at.desc(), SymbolFile.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt).all())

    def count_symbol_files(self) -> int:
        stmt = select(func.count()).select_from(SymbolFile)
        return self.db.scalar(stmt) or 0

    def read_disk_contents(self, symbol_file: SymbolFile) -> str:
        """Read the on-disk copy of a symbol file.

        Raises:
            RecordNotFoundException: If the file is missing from disk
        """
        raw = self.blob_store.read(self.get_key(symbol_file))
        return raw.decode("utf-8", errors="replace")

    def open_disk_contents(self, symbol_file: SymbolFile) -> BinaryIO:
        """Open the on-disk copy of a symbol file for streaming."""
        return self.blob_store.open_for_streaming(self.get_key(symbol_file))

    def get_contents(self, symbol_file: SymbolFile) -> str:
        """Return the symbol text from the database, falling back to disk."""
        if symbol_file.contents is not None:
            return symbol_file.contents
        return self.read_disk_contents(symbol_file)
