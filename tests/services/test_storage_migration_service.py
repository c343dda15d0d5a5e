"""Tests for StorageMigrationService."""

from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.orm import Session

from breakpad_server.models.symbol_file import SymbolFile
from breakpad_server.services.container import ServiceContainer
from breakpad_server.services.storage_migration_service import StorageMigrationService

SYMBOL_TEXT = "MODULE windows x86 ABCDEF01 crashy.pdb\nFUNC 1000 10 0 main\n"


def _make_migrator(container: ServiceContainer, files_in_database: bool) -> StorageMigrationService:
    settings = container.config().model_copy(update={"files_in_database": files_in_database})
    container.config.override(settings)
    return container.storage_migration_service()


def _add_symbol_file(session: Session, code: str, contents: str | None) -> SymbolFile:
    symbol_file = SymbolFile(os="windows", name="crashy.pdb", code=code, arch="x86", contents=contents)
    session.add(symbol_file)
    session.commit()
    return symbol_file


@pytest.fixture
def maintenance() -> Generator[dict[str, MagicMock], None, None]:
    """Patch database compaction and schema sync."""
    with patch(
        "breakpad_server.services.storage_migration_service.compact_database"
    ) as compact, patch(
        "breakpad_server.services.storage_migration_service.sync_schema"
    ) as sync:
        yield {"compact": compact, "sync": sync}


class TestPruneToDisk:
    """FILES_IN_DATABASE off: symbol text moves from the database to disk."""

    def test_contents_written_to_disk_and_pruned(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        symbol_file = _add_symbol_file(session, "AAA1", SYMBOL_TEXT)
        migrator = _make_migrator(container, files_in_database=False)

        summary = migrator.run()

        assert summary.pruned == 1
        assert summary.compacted is True
        session.expire_all()
        assert session.get(SymbolFile, symbol_file.id).contents is None
        path = migrator.symbol_service.get_path(symbol_file)
        assert path.read_text() == SYMBOL_TEXT

    def test_compaction_runs_once_per_pass(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        for code in ("AAA1", "AAA2", "AAA3"):
            _add_symbol_file(session, code, SYMBOL_TEXT)

        summary = _make_migrator(container, files_in_database=False).run()

        assert summary.pruned == 3
        maintenance["compact"].assert_called_once()
        maintenance["sync"].assert_called_once()

    def test_second_run_is_a_no_op(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        _add_symbol_file(session, "AAA1", SYMBOL_TEXT)
        migrator = _make_migrator(container, files_in_database=False)
        migrator.run()
        maintenance["compact"].reset_mock()

        summary = container.storage_migration_service().run()

        assert summary.changed_rows == 0
        assert summary.compacted is False
        maintenance["compact"].assert_not_called()

    def test_no_rows_no_compaction(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        summary = _make_migrator(container, files_in_database=False).run()

        assert summary.changed_rows == 0
        maintenance["compact"].assert_not_called()
        maintenance["sync"].assert_not_called()

    def test_real_compaction_on_sqlite(self, session: Session, container: ServiceContainer):
        symbol_file = _add_symbol_file(session, "AAA1", SYMBOL_TEXT)

        summary = _make_migrator(container, files_in_database=False).run()

        assert summary.compacted is True
        session.expire_all()
        assert session.get(SymbolFile, symbol_file.id).contents is None


class TestRestoreToDatabase:
    """FILES_IN_DATABASE on: symbol text is filled in from disk."""

    def test_contents_restored_from_disk(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        symbol_file = _add_symbol_file(session, "AAA1", None)
        migrator = _make_migrator(container, files_in_database=True)
        migrator.symbol_service.get_path(symbol_file).parent.mkdir(parents=True)
        migrator.symbol_service.get_path(symbol_file).write_text(SYMBOL_TEXT)

        summary = migrator.run()

        assert summary.restored == 1
        session.expire_all()
        assert session.get(SymbolFile, symbol_file.id).contents == SYMBOL_TEXT
        # Restoring frees nothing, so nothing is compacted
        maintenance["compact"].assert_not_called()

    def test_missing_disk_file_skipped(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        symbol_file = _add_symbol_file(session, "AAA1", None)

        summary = _make_migrator(container, files_in_database=True).run()

        assert summary.restored == 0
        assert summary.missing == 1
        session.expire_all()
        assert session.get(SymbolFile, symbol_file.id).contents is None

    def test_missing_disk_copy_rewritten(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        symbol_file = _add_symbol_file(session, "AAA1", SYMBOL_TEXT)
        migrator = _make_migrator(container, files_in_database=True)

        summary = migrator.run()

        assert summary.rewritten == 1
        assert summary.changed_rows == 0
        assert migrator.symbol_service.get_path(symbol_file).read_text() == SYMBOL_TEXT

    def test_existing_disk_copy_left_alone(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        symbol_file = _add_symbol_file(session, "AAA1", SYMBOL_TEXT)
        migrator = _make_migrator(container, files_in_database=True)
        path = migrator.symbol_service.get_path(symbol_file)
        path.parent.mkdir(parents=True)
        path.write_text(SYMBOL_TEXT)

        summary = migrator.run()

        assert summary.rewritten == 0
        assert summary.changed_rows == 0

    def test_second_run_is_a_no_op(
        self, session: Session, container: ServiceContainer, maintenance: dict[str, MagicMock]
    ):
        symbol_file = _add_symbol_file(session, "AAA1", None)
        migrator = _make_migrator(container, files_in_database=True)
        migrator.symbol_service.get_path(symbol_file).parent.mkdir(parents=True)
        migrator.symbol_service.get_path(symbol_file).write_text(SYMBOL_TEXT)
        migrator.run()

        summary = container.storage_migration_service().run()

        assert summary.changed_rows == 0
        assert summary.rewritten == 0
