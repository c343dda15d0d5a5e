"""Database schema management helpers built on Alembic.

Functions accept an explicit engine; when omitted they use the Flask-SQLAlchemy
engine, which requires an application context.
"""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import Script, ScriptDirectory
from sqlalchemy import MetaData, text
from sqlalchemy.engine import Engine

from breakpad_server.extensions import db

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MIGRATIONS_DIR = _PROJECT_ROOT / "alembic"


def _get_engine(engine: Engine | None) -> Engine:
    return engine if engine is not None else db.engine


def _get_alembic_config() -> Config:
    """Build an Alembic config pointing at the bundled migrations."""
    config = Config()
    config.set_main_option("script_location", str(_MIGRATIONS_DIR))
    return config


def check_db_connection(engine: Engine | None = None) -> bool:
    """Return True if the database accepts a trivial query."""
    try:
        with _get_engine(engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database connection check failed: %s", e)
        return False


def get_current_revision(engine: Engine | None = None) -> str | None:
    """Return the currently applied migration revision, if any."""
    with _get_engine(engine).connect() as connection:
        context = MigrationContext.configure(connection)
        return context.get_current_revision()


def _get_pending_scripts(engine: Engine) -> list[Script]:
    """Return migration scripts not yet applied, oldest first."""
    script_dir = ScriptDirectory.from_config(_get_alembic_config())

    with engine.connect() as connection:
        current_heads = set(MigrationContext.configure(connection).get_current_heads())

    pending: list[Script] = []
    for script in script_dir.walk_revisions():
        if script.revision in current_heads:
            break
        pending.append(script)

    pending.reverse()
    return pending


def get_pending_migrations(engine: Engine | None = None) -> list[str]:
    """Return revision identifiers of pending migrations, oldest first."""
    return [script.revision for script in _get_pending_scripts(_get_engine(engine))]


def _drop_all_tables(engine: Engine) -> None:
    """Drop every table in the database, including alembic_version."""
    metadata = MetaData()
    metadata.reflect(bind=engine)
    metadata.drop_all(bind=engine)
    logger.warning("Dropped all database tables")


def upgrade_database(recreate: bool = False, engine: Engine | None = None) -> list[tuple[str, str]]:
    """Apply all pending migrations.

    Args:
        recreate: Drop all tables first
        engine: Engine to migrate (defaults to the Flask-SQLAlchemy engine)

    Returns:
        List of (revision, description) tuples that were applied
    """
    engine = _get_engine(engine)

    if recreate:
        _drop_all_tables(engine)

    pending = _get_pending_scripts(engine)
    if not pending:
        return []

    config = _get_alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")

    applied = [(script.revision, (script.doc or "").strip()) for script in pending]
    for revision, description in applied:
        logger.info("Applied migration %s: %s", revision, description)

    return applied


def sync_schema(engine: Engine | None = None) -> None:
    """Bring the schema up to date after maintenance operations."""
    applied = upgrade_database(engine=engine)
    logger.info("Schema synchronized (%d migration(s) applied)", len(applied))


def compact_database(engine: Engine | None = None) -> None:
    """Reclaim space freed by pruned content.

    VACUUM cannot run inside a transaction, so an autocommit connection
    is used.
    """
    engine = _get_engine(engine)
    with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as connection:
        connection.execute(text("VACUUM"))
    logger.info("Database compaction finished")
