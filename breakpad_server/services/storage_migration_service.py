"""Reconciliation of symbol file storage with the configured storage mode."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, undefer

from breakpad_server.config import Settings
from breakpad_server.database import compact_database, sync_schema
from breakpad_server.exceptions import RecordNotFoundException, StorageException
from breakpad_server.models.symbol_file import SymbolFile
from breakpad_server.services.symbol_service import SymbolService

logger = logging.getLogger(__name__)


@dataclass
class StorageMigrationSummary:
    """Counts of rows touched by one reconciliation pass."""

    pruned: int = 0
    restored: int = 0
    rewritten: int = 0
    missing: int = 0
    compacted: bool = False

    @property
    def changed_rows(self) -> int:
        return self.pruned + self.restored


class StorageMigrationService:
    """Moves symbol text between the database and disk after a mode change.

    With FILES_IN_DATABASE off, text still held in the database is written
    to disk and removed from the row. With it on, rows without text are
    filled from disk. Running the pass twice with the same mode changes
    nothing the second time.
    """

    def __init__(self, db: Session, config: Settings, symbol_service: SymbolService) -> None:
        self.db = db
        self.config = config
        self.symbol_service = symbol_service

    def run(self) -> StorageMigrationSummary:
        """Reconcile every symbol file row and commit once.

        When rows were pruned, the database is compacted to return the freed
        space and the schema is brought up to date afterwards.

        Raises:
            StorageException: If a disk write or the commit fails
        """
        summary = StorageMigrationSummary()

        stmt = select(SymbolFile).options(undefer(SymbolFile.contents)).order_by(SymbolFile.id)
        try:
            for symbol_file in self.db.scalars(stmt).all():
                if self.config.files_in_database:
                    self._restore(symbol_file, summary)
                else:
                    self._prune(symbol_file, summary)
            self.db.commit()
        except StorageException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageException("reconcile symbol storage", str(e)) from e

        if summary.pruned:
            engine = self.db.get_bind()
            compact_database(engine)
            sync_schema(engine)
            summary.compacted = True

        logger.info(
            "Symbol storage reconciled (files_in_database=%s): pruned=%d restored=%d "
            "rewritten=%d missing=%d",
            self.config.files_in_database,
            summary.pruned,
            summary.restored,
            summary.rewritten,
            summary.missing,
        )
        return summary

    def _prune(self, symbol_file: SymbolFile, summary: StorageMigrationSummary) -> None:
        if symbol_file.contents is None:
            return

        key = self.symbol_service.get_key(symbol_file)
        self.symbol_service.blob_store.write(key, symbol_file.contents.encode("utf-8"))
        symbol_file.contents = None
        summary.pruned += 1
        logger.info("Pruned contents of symbol file %d, saved at %s", symbol_file.id, key)

    def _restore(self, symbol_file: SymbolFile, summary: StorageMigrationSummary) -> None:
        key = self.symbol_service.get_key(symbol_file)

        if symbol_file.contents is not None:
            # minidump-stackwalk reads symbols from disk only
            if not self.symbol_service.blob_store.exists(key):
                self.symbol_service.blob_store.write(key, symbol_file.contents.encode("utf-8"))
                summary.rewritten += 1
                logger.info("Rewrote missing disk copy of symbol file %d at %s", symbol_file.id, key)
            return

        try:
            symbol_file.contents = self.symbol_service.read_disk_contents(symbol_file)
        except RecordNotFoundException:
            summary.missing += 1
            logger.warning(
                "Cannot restore symbol file %d: %s is missing from disk", symbol_file.id, key
            )
            return

        summary.restored += 1
        logger.info("Restored contents of symbol file %d from %s", symbol_file.id, key)
