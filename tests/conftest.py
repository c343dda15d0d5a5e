"""Pytest configuration and fixtures."""

import sqlite3
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from flask import Flask
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from breakpad_server import create_app
from breakpad_server.config import MINIDUMP_DOWNLOAD_AS, MINIDUMP_FIELD, FileFieldConfig, Settings
from breakpad_server.database import upgrade_database
from breakpad_server.services.container import ServiceContainer
from breakpad_server.services.crash_report_service import CrashReportService
from breakpad_server.services.symbol_service import SymbolService


def _build_test_settings(tmp_path: Path) -> Settings:
    """Construct base Settings object for tests.

    Settings is a plain Pydantic BaseModel with lowercase fields.
    For tests, we construct it directly instead of using Settings.load().
    """
    data_dir = tmp_path / "data"

    return Settings(
        # Flask settings
        secret_key="test-secret-key",
        flask_env="testing",
        debug=True,
        # CORS settings
        cors_origins=["http://localhost:3000"],
        # Storage locations
        data_dir=data_dir,
        symbols_dir=data_dir / "symbols",
        uploads_dir=data_dir / "uploads",
        # Database settings
        database_url="sqlite:///:memory:",
        # Files on disk unless a test says otherwise
        files_in_database=False,
        file_max_upload_size=None,
        # Crash report fields
        file_fields=[
            FileFieldConfig(name=MINIDUMP_FIELD, download_as=MINIDUMP_DOWNLOAD_AS),
            FileFieldConfig(name="upload_file_log", download_as="log.{id}.txt"),
        ],
        param_fields=["channel", "extra"],
        extra_field="extra",
        # Analyzer (subprocess.run is patched in tests)
        stackwalk_executable="minidump-stackwalk",
        stackwalk_timeout_seconds=None,
        analysis_cache_max_entries=None,
        analysis_cache_ttl_seconds=None,
        inline_path_max_length=128,
    )


def _override_settings_for_sqlite(settings: Settings, conn: sqlite3.Connection) -> Settings:
    """Create a copy of settings configured for SQLite with static pool."""
    new_settings = settings.model_copy(
        update={
            "database_url": "sqlite://",
            "sqlalchemy_engine_options": {
                "poolclass": StaticPool,
                "creator": lambda: conn,
            },
        }
    )
    return new_settings


@pytest.fixture(scope="session")
def session_tmp_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Session-scoped temporary path for test fixtures."""
    return tmp_path_factory.mktemp("session")


@pytest.fixture(scope="session")
def template_connection(session_tmp_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """Create a template SQLite database once and apply migrations."""
    conn = sqlite3.connect(":memory:", check_same_thread=False)

    settings = _override_settings_for_sqlite(_build_test_settings(session_tmp_path), conn)

    template_app = create_app(settings)
    with template_app.app_context():
        upgrade_database(recreate=True)

    yield conn

    conn.close()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with in-memory database."""
    return _build_test_settings(tmp_path)


@pytest.fixture
def app(test_settings: Settings, template_connection: sqlite3.Connection) -> Generator[Flask, None, None]:
    """Create Flask app for testing using a fresh copy of the template database."""
    clone_conn = sqlite3.connect(":memory:", check_same_thread=False)
    template_connection.backup(clone_conn)

    settings = _override_settings_for_sqlite(test_settings, clone_conn)

    app = create_app(settings)

    try:
        yield app
    finally:
        with app.app_context():
            from breakpad_server.extensions import db as flask_db

            flask_db.session.remove()

        clone_conn.close()


@pytest.fixture
def container(app: Flask) -> ServiceContainer:
    """Access to the DI container for testing with session provided."""
    container = app.container

    with app.app_context():
        from sqlalchemy.orm import sessionmaker

        from breakpad_server.extensions import db as flask_db

        SessionLocal = sessionmaker(
            bind=flask_db.engine, autoflush=True, expire_on_commit=False
        )

    container.session_maker.override(SessionLocal)

    return container


@pytest.fixture
def session(container: ServiceContainer) -> Generator[Session, None, None]:
    """Create a new database session for a test."""
    session = container.db_session()

    exc = None
    try:
        yield session
    except Exception as e:
        exc = e

    if exc:
        session.rollback()
    else:
        session.commit()
    session.close()

    container.db_session.reset()


@pytest.fixture
def client(app: Flask) -> Any:
    """Create test client."""
    return app.test_client()


@pytest.fixture
def symbol_service(container: ServiceContainer) -> SymbolService:
    """Create SymbolService instance via the container."""
    return container.symbol_service()


@pytest.fixture
def crash_report_service(container: ServiceContainer) -> CrashReportService:
    """Create CrashReportService instance via the container."""
    return container.crash_report_service()


@pytest.fixture
def make_symbol_file() -> Callable[..., bytes]:
    """Factory fixture for Breakpad symbol file bytes.

    Usage:
        raw = make_symbol_file(name="app.pdb", code="ABC123")
    """

    def _make(
        os_name: str = "windows",
        arch: str = "x86_64",
        code: str = "0123456789ABCDEF0123456789ABCDEF1",
        name: str = "crashy.pdb",
        body: str = "FILE 0 crashy.cc\nFUNC 1000 10 0 main\n",
    ) -> bytes:
        return f"MODULE {os_name} {arch} {code} {name}\n{body}".encode()

    return _make


@pytest.fixture
def mock_stackwalk() -> Generator[MagicMock, None, None]:
    """Patch subprocess.run as seen by the stackwalk service.

    The default result is a successful run printing a fixed stack trace.
    """
    with patch("breakpad_server.services.stackwalk_service.subprocess.run") as run:
        run.return_value = MagicMock(
            returncode=0,
            stdout=b"Thread 0 (crashed)\n 0  crashy!main [crashy.cc : 12]\n",
            stderr=b"",
        )
        yield run
